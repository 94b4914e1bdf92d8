"""Catalog endpoints backed by the in-memory course index.

These handlers are intentionally thin: every query is answered by
``CatalogIndex`` and the routes only translate query strings into
``FilterOptions`` and missing records into 404s. Numeric query parameters
are taken as strings so a malformed value is ignored instead of rejected.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.index import CatalogIndex, get_catalog_index
from ..schemas import (
    CatalogStats,
    Category,
    CategoryCount,
    CourseWithDetails,
    CourseWithInstructor,
    FilteredCourses,
    FilterOptions,
    HealthStatus,
    InstructorSummary,
    InstructorWithCourses,
    PaginatedCourses,
    PriceRange,
    SubCategory,
    _lenient_number,
)

FEATURED_LIMIT = 8

router = APIRouter()

CategoryTier = Literal["all", "main", "other"]


@router.get("/courses", response_model=PaginatedCourses)
def list_courses(
    q: Optional[str] = Query(default=None, description="Free-text search"),
    category: Optional[str] = None,
    level: Optional[str] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    rating: Optional[str] = Query(default=None, description="Minimum course rating"),
    page: Optional[str] = Query(default=None, description="1-indexed page number"),
    limit: Optional[str] = Query(default=None, description="Page size"),
    sort: Optional[str] = Query(default=None, description="title, price, price_desc, rating, reviews, popularity, date"),
    index: CatalogIndex = Depends(get_catalog_index),
) -> PaginatedCourses:
    options = FilterOptions(
        q=q,
        category=category,
        level=level,
        min_price=min_price,
        max_price=max_price,
        rating=rating,
        page=page,
        limit=limit,
        sort=sort,
    )
    return index.get_courses(options)


@router.get("/courses/search", response_model=List[CourseWithInstructor])
def search_courses(
    q: str = Query(default="", description="Free-text search"),
    category: Optional[str] = None,
    level: Optional[str] = None,
    rating: Optional[str] = None,
    sort: Optional[str] = None,
    index: CatalogIndex = Depends(get_catalog_index),
) -> List[CourseWithInstructor]:
    options = FilterOptions(category=category, level=level, rating=rating, sort=sort)
    return index.search(q, options)


@router.get("/courses/featured", response_model=List[CourseWithInstructor])
def featured_courses(
    limit: Optional[str] = Query(default=None, description="Number of courses, default 8"),
    index: CatalogIndex = Depends(get_catalog_index),
) -> List[CourseWithInstructor]:
    parsed = _lenient_number(limit)
    return index.get_featured(FEATURED_LIMIT if parsed is None else max(0, int(parsed)))


@router.get("/courses/slug/{slug}", response_model=CourseWithDetails)
def get_course_by_slug(slug: str, index: CatalogIndex = Depends(get_catalog_index)) -> CourseWithDetails:
    course = index.get_by_slug(slug)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("/courses/{course_id}", response_model=CourseWithDetails)
def get_course(course_id: str, index: CatalogIndex = Depends(get_catalog_index)) -> CourseWithDetails:
    course = index.get_by_id(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("/filter", response_model=FilteredCourses)
def filter_courses(
    q: Optional[str] = None,
    category: Optional[str] = None,
    sub_category: Optional[str] = None,
    level: Optional[str] = None,
    instructor_id: Optional[str] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    rating: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: Optional[str] = None,
    index: CatalogIndex = Depends(get_catalog_index),
) -> FilteredCourses:
    options = FilterOptions(
        q=q,
        category=category,
        sub_category=sub_category,
        level=level,
        instructor_id=instructor_id,
        min_price=min_price,
        max_price=max_price,
        rating=rating,
        page=page,
        limit=limit,
        sort=sort,
    )
    return index.filter_courses(options)


@router.get("/categories", response_model=List[Category])
def list_categories(
    tier: CategoryTier = Query(default="all", description="main, other or all"),
    index: CatalogIndex = Depends(get_catalog_index),
) -> List[Category]:
    return index.get_category_taxonomy(tier)


@router.get("/categories/names", response_model=List[str])
def list_category_names(index: CatalogIndex = Depends(get_catalog_index)) -> List[str]:
    return index.get_categories()


@router.get("/categories/counts", response_model=List[CategoryCount])
def list_category_counts(index: CatalogIndex = Depends(get_catalog_index)) -> List[CategoryCount]:
    return index.get_category_counts()


@router.get("/sub-categories", response_model=List[SubCategory])
def list_sub_categories(
    category: Optional[str] = None,
    index: CatalogIndex = Depends(get_catalog_index),
) -> List[SubCategory]:
    return index.get_sub_categories(category or None)


@router.get("/levels", response_model=List[str])
def list_levels(index: CatalogIndex = Depends(get_catalog_index)) -> List[str]:
    return index.get_levels()


@router.get("/instructors", response_model=List[InstructorSummary])
def list_instructors(index: CatalogIndex = Depends(get_catalog_index)) -> List[InstructorSummary]:
    return index.get_all_instructors()


@router.get("/instructors/{instructor_id}", response_model=InstructorWithCourses)
def get_instructor(instructor_id: str, index: CatalogIndex = Depends(get_catalog_index)) -> InstructorWithCourses:
    instructor = index.get_instructor_with_courses(instructor_id)
    if instructor is None:
        raise HTTPException(status_code=404, detail="Instructor not found")
    return instructor


@router.get("/stats", response_model=CatalogStats)
def catalog_stats(index: CatalogIndex = Depends(get_catalog_index)) -> CatalogStats:
    return index.get_stats()


@router.get("/price-range", response_model=PriceRange)
def price_range(index: CatalogIndex = Depends(get_catalog_index)) -> PriceRange:
    return index.get_price_range()


@router.get("/health", response_model=HealthStatus)
def health(index: CatalogIndex = Depends(get_catalog_index)) -> HealthStatus:
    return index.health()
