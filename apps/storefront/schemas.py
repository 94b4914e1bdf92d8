"""Pydantic schemas for the course catalog and its API responses."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_MIN_PRICE = 0
DEFAULT_MAX_PRICE = 5_000_000


def _as_text(value: Any) -> Any:
    # Snapshot ids are sometimes numeric and optional text is sometimes null.
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class Instructor(BaseModel):
    id: str
    fullname: str
    avatar: str = ""
    bio_snippet: str = ""

    @field_validator("id", "avatar", "bio_snippet", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class User(BaseModel):
    id: int
    username: str
    fullname: str = ""
    avatar: str = ""


class Review(BaseModel):
    id: int
    course_id: str
    user_id: int
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    date: str = ""

    @field_validator("course_id", "comment", "date", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class Category(BaseModel):
    id: str
    name: str
    icon: str = ""
    description: str = ""
    color: str = ""
    featured: Optional[bool] = None
    subcategories: Optional[List[str]] = None

    @field_validator("id", "icon", "description", "color", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class Course(BaseModel):
    id: str
    title: str
    slug: Optional[str] = None
    category: str = ""
    sub_category: Optional[str] = None
    level: str = ""
    instructor_id: str = ""
    price: float = 0
    currency: str = "VND"
    discount_price: Optional[float] = None
    description: str = ""
    learning_outcomes: List[str] = Field(default_factory=list)
    what_you_will_learn: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    duration_hours: float = 0
    number_of_lectures: int = 0
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    number_of_reviews: int = 0
    # Snapshots store these flags as 0/1.
    is_bestseller: bool = False
    is_new: bool = False
    thumbnail_url: Optional[str] = None
    preview_video_url: Optional[str] = None
    last_updated: Optional[str] = None
    related_topics: List[str] = Field(default_factory=list)
    language: Optional[str] = None
    certifiable: Optional[bool] = None

    @field_validator("id", "category", "level", "instructor_id", "description", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator(
        "learning_outcomes", "what_you_will_learn", "requirements", "related_topics", mode="before"
    )
    @classmethod
    def none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator(
        "price",
        "currency",
        "duration_hours",
        "number_of_lectures",
        "rating",
        "number_of_reviews",
        "is_bestseller",
        "is_new",
        mode="before",
    )
    @classmethod
    def none_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return cls.model_fields[info.field_name].default if value is None else value

    @property
    def effective_price(self) -> float:
        return self.discount_price if self.discount_price is not None else self.price

    @property
    def updated_at(self) -> Optional[datetime]:
        if not self.last_updated:
            return None
        try:
            parsed = datetime.fromisoformat(self.last_updated.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed


class CourseWithInstructor(Course):
    instructor: Instructor


class ReviewWithUser(Review):
    user: User


class CourseStats(BaseModel):
    total_reviews: int = 0
    average_rating: float = 0.0


class CourseWithDetails(CourseWithInstructor):
    reviews: List[ReviewWithUser] = Field(default_factory=list)
    related_courses: List[CourseWithInstructor] = Field(default_factory=list)
    stats: CourseStats = Field(default_factory=CourseStats)


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_courses: int
    per_page: int


class PaginatedCourses(BaseModel):
    courses: List[CourseWithInstructor] = Field(default_factory=list)
    pagination: Pagination


class FilterStats(BaseModel):
    total_found: int = 0


class FilteredCourses(PaginatedCourses):
    stats: FilterStats = Field(default_factory=FilterStats)


class InstructorStats(BaseModel):
    total_courses: int = 0
    total_students: int = 0
    total_reviews: int = 0
    average_rating: float = 0.0


class InstructorWithCourses(Instructor):
    courses: List[CourseWithInstructor] = Field(default_factory=list)
    stats: InstructorStats = Field(default_factory=InstructorStats)


class InstructorSummary(Instructor):
    course_count: int = 0
    total_students: int = 0
    average_rating: float = 0.0


class CatalogStats(BaseModel):
    total_courses: int = 0
    total_instructors: int = 0
    # Sum of per-course review counts, used as an audience size estimate.
    total_students: int = 0
    total_reviews: int = 0
    average_rating: float = 0.0
    categories_count: int = 0
    featured_courses: int = 0


class PriceBuckets(BaseModel):
    free: int = 0
    under_500k: int = 0
    from_500k_to_1m: int = Field(default=0, alias="500k_1m")
    from_1m_to_2m: int = Field(default=0, alias="1m_2m")
    over_2m: int = 0

    model_config = {"populate_by_name": True}


class PriceRange(BaseModel):
    min: float = 0
    max: float = 0
    average: float = 0
    ranges: PriceBuckets = Field(default_factory=PriceBuckets)


class CategoryCount(BaseModel):
    name: str
    course_count: int


class SubCategory(BaseModel):
    name: str
    category: str
    course_count: int


class DataLoaded(BaseModel):
    courses: int = 0
    instructors: int = 0
    reviews: int = 0
    users: int = 0


class HealthStatus(BaseModel):
    status: str = "OK"
    timestamp: str
    data_loaded: DataLoaded


def _lenient_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


class FilterOptions(BaseModel):
    """Query options shared by search, listing and the advanced filter.

    Numeric fields accept raw query-string values; anything that does not
    parse as a finite number is treated as not provided so the read path
    never fails on malformed input.
    """

    q: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    level: Optional[str] = None
    instructor_id: Optional[str] = None
    min_price: float = DEFAULT_MIN_PRICE
    max_price: float = DEFAULT_MAX_PRICE
    rating: Optional[float] = None
    page: int = 1
    limit: int = 12
    sort: Optional[str] = None

    @field_validator("q", "category", "sub_category", "level", "instructor_id", "sort", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("min_price", mode="before")
    @classmethod
    def parse_min_price(cls, value: Any) -> float:
        number = _lenient_number(value)
        return DEFAULT_MIN_PRICE if number is None else number

    @field_validator("max_price", mode="before")
    @classmethod
    def parse_max_price(cls, value: Any) -> float:
        number = _lenient_number(value)
        return DEFAULT_MAX_PRICE if number is None else number

    @field_validator("rating", mode="before")
    @classmethod
    def parse_rating(cls, value: Any) -> Optional[float]:
        return _lenient_number(value)

    @field_validator("page", mode="before")
    @classmethod
    def parse_page(cls, value: Any) -> int:
        number = _lenient_number(value)
        return 1 if number is None else max(1, int(number))

    @field_validator("limit", mode="before")
    @classmethod
    def parse_limit(cls, value: Any) -> int:
        number = _lenient_number(value)
        return 12 if number is None else max(1, int(number))
