"""Read-only query layer over the in-memory course catalog.

``CatalogIndex`` is built once from the raw snapshot records and never
mutated afterwards, so a single instance can serve concurrent requests.
Lookups that miss degrade to ``None``, empty lists or placeholder joins;
nothing on the read path raises for absent data.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..schemas import (
    CatalogStats,
    Category,
    CategoryCount,
    Course,
    CourseStats,
    CourseWithDetails,
    CourseWithInstructor,
    DataLoaded,
    FilteredCourses,
    FilterOptions,
    FilterStats,
    HealthStatus,
    Instructor,
    InstructorStats,
    InstructorSummary,
    InstructorWithCourses,
    PaginatedCourses,
    Pagination,
    PriceBuckets,
    PriceRange,
    Review,
    ReviewWithUser,
    SubCategory,
    User,
)
from .dataset import CatalogSnapshot, load_snapshot
from .text import collation_key, create_slug, normalize_text, search_score, split_terms

ModelT = TypeVar("ModelT", bound=BaseModel)

RELATED_COURSES_LIMIT = 4
FEATURED_MIN_RATING = 4.8

PLACEHOLDER_INSTRUCTOR_NAME = "Unknown Instructor"
PLACEHOLDER_INSTRUCTOR_AVATAR = "https://via.placeholder.com/150"
PLACEHOLDER_INSTRUCTOR_BIO = "Instructor information not available."
PLACEHOLDER_USERNAME = "unknown"
PLACEHOLDER_USER_NAME = "Anonymous User"
PLACEHOLDER_USER_AVATAR = "https://via.placeholder.com/50"

_SORT_ALIASES = {"price_asc": "price", "newest": "date"}

_EPOCH = datetime(1970, 1, 1)


def _parse_records(model: Type[ModelT], records: Iterable[Any], label: str) -> List[ModelT]:
    parsed: List[ModelT] = []
    for record in records or []:
        if isinstance(record, model):
            parsed.append(record)
            continue
        if isinstance(record, BaseModel):
            record = record.model_dump()
        if not isinstance(record, dict):
            logging.warning("Skipping %s record that is not an object: %r", label, record)
            continue
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as exc:
            logging.warning("Skipping invalid %s record %r: %s", label, record.get("id"), exc)
    return parsed


def _has_identity(record: Any) -> bool:
    if isinstance(record, BaseModel):
        return bool(getattr(record, "id", None)) and bool(getattr(record, "title", None))
    return isinstance(record, dict) and bool(record.get("id")) and bool(record.get("title"))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def _popularity(course: Course) -> float:
    return (course.rating or 0) * math.log(max(course.number_of_reviews, 0) + 1)


class CatalogIndex:
    def __init__(
        self,
        courses: Iterable[Any] = (),
        instructors: Iterable[Any] = (),
        reviews: Iterable[Any] = (),
        users: Iterable[Any] = (),
        categories: Iterable[Any] = (),
        main_categories: Iterable[Any] = (),
    ) -> None:
        self._courses: Tuple[Course, ...] = tuple(self._ingest_courses(courses))
        self._instructors: Tuple[Instructor, ...] = tuple(_parse_records(Instructor, instructors, "instructor"))
        self._reviews: Tuple[Review, ...] = tuple(_parse_records(Review, reviews, "review"))
        self._users: Tuple[User, ...] = tuple(_parse_records(User, users, "user"))
        self._categories: Tuple[Category, ...] = tuple(_parse_records(Category, categories, "category"))
        self._main_category_ids = frozenset(
            str(node.get("id") if isinstance(node, dict) else getattr(node, "id", ""))
            for node in main_categories or []
        )

        # First occurrence wins for duplicated ids.
        self._courses_by_id: Dict[str, Course] = {}
        for course in self._courses:
            self._courses_by_id.setdefault(course.id, course)
        self._courses_by_slug: Dict[str, Course] = {}
        for course in self._courses:
            self._courses_by_slug.setdefault(course.slug or "", course)
        self._instructors_by_id: Dict[str, Instructor] = {}
        for instructor in self._instructors:
            self._instructors_by_id.setdefault(instructor.id, instructor)
        self._users_by_id: Dict[int, User] = {}
        for user in self._users:
            self._users_by_id.setdefault(user.id, user)
        self._reviews_by_course: Dict[str, List[Review]] = defaultdict(list)
        for review in self._reviews:
            self._reviews_by_course[review.course_id].append(review)

        logging.info(
            "Catalog loaded: %d courses, %d instructors, %d reviews, %d users, %d categories",
            len(self._courses),
            len(self._instructors),
            len(self._reviews),
            len(self._users),
            len(self._categories),
        )

    @classmethod
    def from_snapshot(cls, snapshot: CatalogSnapshot) -> "CatalogIndex":
        return cls(
            courses=snapshot.courses,
            instructors=snapshot.instructors,
            reviews=snapshot.reviews,
            users=snapshot.users,
            categories=snapshot.categories,
            main_categories=snapshot.main_categories,
        )

    @staticmethod
    def _ingest_courses(records: Iterable[Any]) -> List[Course]:
        records = list(records or [])
        valid = [record for record in records if _has_identity(record)]
        dropped = len(records) - len(valid)
        if dropped:
            logging.warning("Discarded %d course records without an id or title", dropped)

        parsed = _parse_records(Course, valid, "course")
        # Provided slugs are reserved up front so a derived slug never shadows one.
        taken = {course.slug for course in parsed if course.slug}
        provided: set = set()
        courses: List[Course] = []
        for course in parsed:
            if not course.slug:
                base = create_slug(course.title) or create_slug(course.id) or "course"
                slug, suffix = base, 2
                while slug in taken:
                    slug = f"{base}-{suffix}"
                    suffix += 1
                taken.add(slug)
                course = course.model_copy(update={"slug": slug})
            elif course.slug in provided:
                logging.warning("Duplicate course slug %r on course %s", course.slug, course.id)
            else:
                provided.add(course.slug)
            if course.discount_price is not None and course.discount_price > course.price:
                logging.warning(
                    "Course %s has discount_price %s above price %s", course.id, course.discount_price, course.price
                )
            courses.append(course)
        return courses

    @property
    def courses(self) -> Tuple[Course, ...]:
        return self._courses

    @property
    def instructors(self) -> Tuple[Instructor, ...]:
        return self._instructors

    # -- joins ---------------------------------------------------------------

    def _instructor_for(self, course: Course) -> Instructor:
        instructor = self._instructors_by_id.get(course.instructor_id)
        if instructor is not None:
            return instructor
        return Instructor(
            id=course.instructor_id,
            fullname=PLACEHOLDER_INSTRUCTOR_NAME,
            avatar=PLACEHOLDER_INSTRUCTOR_AVATAR,
            bio_snippet=PLACEHOLDER_INSTRUCTOR_BIO,
        )

    def _user_for(self, review: Review) -> User:
        user = self._users_by_id.get(review.user_id)
        if user is not None:
            return user
        return User(
            id=review.user_id,
            username=PLACEHOLDER_USERNAME,
            fullname=PLACEHOLDER_USER_NAME,
            avatar=PLACEHOLDER_USER_AVATAR,
        )

    def enrich(self, course: Course) -> CourseWithInstructor:
        """Attach the course's instructor, or a placeholder when it is unknown."""
        return CourseWithInstructor(**course.model_dump(), instructor=self._instructor_for(course))

    # -- search, filter, sort, paginate -------------------------------------

    def _rank(self, query: Optional[str]) -> List[Course]:
        normalized = normalize_text(query)
        if not normalized:
            return []
        terms = split_terms(normalized)
        scored = []
        for course in self._courses:
            score = search_score(course.title, course.description, normalized, terms)
            if score > 0:
                scored.append((score, course))
        # sort is stable, so equal scores keep collection order
        scored.sort(key=lambda item: item[0], reverse=True)
        return [course for _, course in scored]

    def search(self, query: Optional[str], options: Optional[FilterOptions] = None) -> List[CourseWithInstructor]:
        """Rank courses by relevance to ``query``, then apply ``options``.

        Results stay in relevance order unless ``options.sort`` names another
        ordering. An empty or blank query returns no results.
        """
        options = options or FilterOptions()
        results = self.filter(self._rank(query), options)
        if options.sort:
            results = self.sort(results, options.sort)
        return [self.enrich(course) for course in results]

    def filter(self, courses: Iterable[Course], options: Optional[FilterOptions] = None) -> List[Course]:
        options = options or FilterOptions()

        def match(course: Course) -> bool:
            if options.category and course.category != options.category:
                return False
            if options.sub_category and course.sub_category != options.sub_category:
                return False
            if options.level and course.level != options.level:
                return False
            if options.instructor_id and course.instructor_id != options.instructor_id:
                return False
            price = course.effective_price
            if price < options.min_price or price > options.max_price:
                return False
            if options.rating is not None and course.rating < options.rating:
                return False
            return True

        return [course for course in courses if match(course)]

    def sort(self, courses: Iterable[Course], key: Optional[str] = "title") -> List[Course]:
        key = _SORT_ALIASES.get(key or "title", key or "title")
        courses = list(courses)
        if key == "relevance":
            return courses
        if key == "price":
            return sorted(courses, key=lambda c: c.effective_price)
        if key == "price_desc":
            return sorted(courses, key=lambda c: c.effective_price, reverse=True)
        if key == "rating":
            return sorted(courses, key=lambda c: c.rating or 0, reverse=True)
        if key == "reviews":
            return sorted(courses, key=lambda c: c.number_of_reviews or 0, reverse=True)
        if key == "popularity":
            return sorted(courses, key=_popularity, reverse=True)
        if key == "date":
            return sorted(courses, key=lambda c: c.updated_at or _EPOCH, reverse=True)
        return sorted(courses, key=lambda c: collation_key(c.title))

    @staticmethod
    def paginate(courses: Sequence[Any], page: int = 1, limit: int = 12) -> Tuple[List[Any], Pagination]:
        page = max(1, int(page))
        limit = max(1, int(limit))
        total = len(courses)
        start = (page - 1) * limit
        pagination = Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_courses=total,
            per_page=limit,
        )
        return list(courses[start : start + limit]), pagination

    def _query(self, options: FilterOptions) -> List[Course]:
        candidates = self._rank(options.q) if options.q else list(self._courses)
        filtered = self.filter(candidates, options)
        return self.sort(filtered, options.sort or "title")

    def get_courses(self, options: Optional[FilterOptions] = None) -> PaginatedCourses:
        """Search, filter, sort and paginate in one call."""
        options = options or FilterOptions()
        page_items, pagination = self.paginate(self._query(options), options.page, options.limit)
        return PaginatedCourses(
            courses=[self.enrich(course) for course in page_items],
            pagination=pagination,
        )

    def filter_courses(self, options: Optional[FilterOptions] = None) -> FilteredCourses:
        result = self.get_courses(options)
        return FilteredCourses(
            courses=result.courses,
            pagination=result.pagination,
            stats=FilterStats(total_found=result.pagination.total_courses),
        )

    # -- lookups -------------------------------------------------------------

    def get_by_id(self, course_id: Any) -> Optional[CourseWithDetails]:
        course = self._courses_by_id.get(str(course_id))
        if course is None:
            return None
        return self._details(course)

    def get_by_slug(self, slug: str) -> Optional[CourseWithDetails]:
        course = self._courses_by_slug.get(slug or "")
        if course is None or not slug:
            return None
        return self._details(course)

    def _details(self, course: Course) -> CourseWithDetails:
        reviews = self._reviews_by_course.get(course.id, [])
        related = [c for c in self._courses if c.category == course.category and c.id != course.id]
        return CourseWithDetails(
            **course.model_dump(),
            instructor=self._instructor_for(course),
            reviews=[ReviewWithUser(**review.model_dump(), user=self._user_for(review)) for review in reviews],
            related_courses=[self.enrich(c) for c in related[:RELATED_COURSES_LIMIT]],
            stats=CourseStats(
                total_reviews=len(reviews),
                average_rating=_mean([review.rating for review in reviews]),
            ),
        )

    def get_featured(self, limit: int = 8) -> List[CourseWithInstructor]:
        featured = [c for c in self._courses if c.is_bestseller or (c.rating or 0) >= FEATURED_MIN_RATING]
        featured = sorted(featured, key=lambda c: c.rating or 0, reverse=True)
        return [self.enrich(course) for course in featured[: max(0, int(limit))]]

    def get_categories(self) -> List[str]:
        return list(dict.fromkeys(c.category for c in self._courses if c.category))

    def get_category_counts(self) -> List[CategoryCount]:
        """Distinct course categories with how many courses each holds."""
        counts = Counter(c.category for c in self._courses if c.category)
        return [CategoryCount(name=name, course_count=count) for name, count in counts.items()]

    def get_levels(self) -> List[str]:
        return list(dict.fromkeys(c.level for c in self._courses if c.level))

    def get_category_taxonomy(self, tier: str = "all") -> List[Category]:
        """Return taxonomy nodes; ``tier`` selects the main (featured) or other group."""
        if tier == "main":
            return [c for c in self._categories if c.id in self._main_category_ids]
        if tier == "other":
            return [c for c in self._categories if c.id not in self._main_category_ids]
        return list(self._categories)

    def get_category_by_name(self, name: str) -> Optional[Category]:
        return next((c for c in self._categories if c.name == name), None)

    def get_sub_categories(self, category: Optional[str] = None) -> List[SubCategory]:
        courses = [c for c in self._courses if c.category == category] if category else list(self._courses)
        names = dict.fromkeys(c.sub_category for c in courses if c.sub_category)
        return [
            SubCategory(
                name=name,
                category=category or "all",
                course_count=sum(1 for c in courses if c.sub_category == name),
            )
            for name in names
        ]

    # -- instructors ---------------------------------------------------------

    def _instructor_stats(self, instructor_id: str) -> Tuple[List[Course], InstructorStats]:
        courses = [c for c in self._courses if c.instructor_id == instructor_id]
        reviews = [r for c in courses for r in self._reviews_by_course.get(c.id, [])]
        stats = InstructorStats(
            total_courses=len(courses),
            total_students=sum(c.number_of_reviews or 0 for c in courses),
            total_reviews=len(reviews),
            average_rating=_mean([r.rating for r in reviews]),
        )
        return courses, stats

    def get_instructor_with_courses(self, instructor_id: str) -> Optional[InstructorWithCourses]:
        instructor = self._instructors_by_id.get(str(instructor_id))
        if instructor is None:
            return None
        courses, stats = self._instructor_stats(instructor.id)
        return InstructorWithCourses(
            **instructor.model_dump(),
            courses=[self.enrich(course) for course in courses],
            stats=stats,
        )

    def get_all_instructors(self) -> List[InstructorSummary]:
        summaries = []
        for instructor in self._instructors:
            _, stats = self._instructor_stats(instructor.id)
            summaries.append(
                InstructorSummary(
                    **instructor.model_dump(),
                    course_count=stats.total_courses,
                    total_students=stats.total_students,
                    average_rating=stats.average_rating,
                )
            )
        return summaries

    # -- aggregates ----------------------------------------------------------

    def get_price_range(self) -> PriceRange:
        prices = [c.effective_price for c in self._courses]
        positive = [p for p in prices if p > 0]
        if not positive:
            return PriceRange()
        return PriceRange(
            min=min(positive),
            max=max(positive),
            average=_round_half_up(_mean(positive)),
            ranges=PriceBuckets(
                free=sum(1 for p in prices if p == 0),
                under_500k=sum(1 for p in prices if 0 < p < 500_000),
                from_500k_to_1m=sum(1 for p in prices if 500_000 <= p < 1_000_000),
                from_1m_to_2m=sum(1 for p in prices if 1_000_000 <= p < 2_000_000),
                over_2m=sum(1 for p in prices if p >= 2_000_000),
            ),
        )

    def get_stats(self) -> CatalogStats:
        return CatalogStats(
            total_courses=len(self._courses),
            total_instructors=len(self._instructors),
            total_students=sum(c.number_of_reviews or 0 for c in self._courses),
            total_reviews=len(self._reviews),
            average_rating=round(_mean([r.rating for r in self._reviews]), 1),
            categories_count=len(self.get_categories()),
            featured_courses=sum(1 for c in self._courses if c.is_bestseller),
        )

    def health(self) -> HealthStatus:
        return HealthStatus(
            status="OK",
            timestamp=datetime.now(timezone.utc).isoformat(),
            data_loaded=DataLoaded(
                courses=len(self._courses),
                instructors=len(self._instructors),
                reviews=len(self._reviews),
                users=len(self._users),
            ),
        )


@lru_cache(maxsize=1)
def get_catalog_index() -> CatalogIndex:
    """Process-wide index built from the configured data directory."""
    return CatalogIndex.from_snapshot(load_snapshot())
