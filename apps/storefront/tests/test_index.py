import logging

import pytest

from storefront.core.index import CatalogIndex
from storefront.schemas import Course, FilterOptions


def _three_course_index() -> CatalogIndex:
    return CatalogIndex(
        courses=[
            {"id": "a", "title": "Web Development Basics", "price": 100, "rating": 4.0, "instructor_id": "p1"},
            {"id": "b", "title": "Advanced Web", "price": 50, "rating": 4.9, "instructor_id": "p1"},
            {"id": "c", "title": "Cooking 101", "price": 20, "rating": 5.0, "instructor_id": "p2"},
        ],
        instructors=[{"id": "p1", "fullname": "Ada Nguyen", "avatar": "", "bio_snippet": ""}],
    )


def _catalog_index() -> CatalogIndex:
    return CatalogIndex(
        courses=[
            {
                "id": "c1",
                "title": "Lập trình Python",
                "category": "Lập trình",
                "sub_category": "Python",
                "level": "Cơ bản",
                "instructor_id": "i1",
                "price": 1_000_000,
                "discount_price": 400_000,
                "description": "Học Python từ đầu",
                "rating": 4.6,
                "number_of_reviews": 120,
                "is_bestseller": 1,
                "last_updated": "2024-03-01",
            },
            {
                "id": "c2",
                "title": "Python nâng cao",
                "category": "Lập trình",
                "sub_category": "Python",
                "level": "Nâng cao",
                "instructor_id": "i1",
                "price": 1_500_000,
                "description": "Decorator, generator và asyncio",
                "rating": 4.9,
                "number_of_reviews": 10,
                "last_updated": "2024-06-01",
            },
            {
                "id": "c3",
                "title": "Thiết kế Logo",
                "category": "Thiết kế",
                "level": "Cơ bản",
                "instructor_id": "i2",
                "price": 0,
                "description": "Nguyên tắc thiết kế nhận diện thương hiệu",
                "rating": 4.1,
                "number_of_reviews": 900,
            },
            {
                "id": "c4",
                "title": "Go cho backend",
                "category": "Lập trình",
                "sub_category": "Go",
                "level": "Trung cấp",
                "instructor_id": "ghost",
                "price": 2_500_000,
                "discount_price": 2_000_000,
                "description": "Viết dịch vụ HTTP bằng Go",
                "rating": 4.3,
                "number_of_reviews": 300,
                "last_updated": "not a date",
            },
        ],
        instructors=[
            {"id": "i1", "fullname": "Trần Văn Khoa", "avatar": "https://example.com/i1.png", "bio_snippet": "Python dev"},
            {"id": "i2", "fullname": "Lê Thị Mai", "avatar": "https://example.com/i2.png", "bio_snippet": "Designer"},
        ],
        reviews=[
            {"id": 1, "course_id": "c1", "user_id": 1, "rating": 5, "comment": "Tuyệt", "date": "2024-04-01"},
            {"id": 2, "course_id": "c1", "user_id": 99, "rating": 4, "comment": "Ổn", "date": "2024-04-02"},
            {"id": 3, "course_id": "c2", "user_id": 1, "rating": 3, "comment": "Khó", "date": "2024-07-01"},
        ],
        users=[{"id": 1, "username": "tuan", "fullname": "Tuấn", "avatar": ""}],
        categories=[
            {"id": "programming", "name": "Lập trình", "icon": "💻", "description": "", "color": "blue"},
            {"id": "design", "name": "Thiết kế", "icon": "🎨", "description": "", "color": "pink"},
        ],
        main_categories=[{"id": "programming"}],
    )


def test_search_orders_by_documented_weights_with_stable_ties():
    index = _three_course_index()
    results = index.search("web")
    # "a" and "b" both score 19 (contains + word prefix + term); ties keep collection order
    assert [course.id for course in results] == ["a", "b"]


def test_search_ranks_exact_title_first_ignoring_case_and_diacritics():
    index = _three_course_index()
    assert index.search("ADVANCED wéb")[0].id == "b"
    assert index.search("cooking 101")[0].id == "c"


@pytest.mark.parametrize("query", ["", "   ", None])
def test_search_blank_query_returns_nothing(query):
    assert _three_course_index().search(query) == []


def test_search_applies_filters_and_optional_sort():
    index = _catalog_index()
    # c1 also matches in its description, so it outranks c2
    assert [c.id for c in index.search("python")] == ["c1", "c2"]
    assert [c.id for c in index.search("python", FilterOptions(level="Cơ bản"))] == ["c1"]
    assert [c.id for c in index.search("python", FilterOptions(sort="rating"))] == ["c2", "c1"]


def test_filter_price_range_is_inclusive():
    index = _three_course_index()
    result = index.filter(index.courses, FilterOptions(min_price=30, max_price=100))
    assert [course.id for course in result] == ["a", "b"]


def test_filter_uses_discount_price_when_present():
    index = _catalog_index()
    result = index.filter(index.courses, FilterOptions(max_price=500_000))
    # c1 is discounted to 400k, c3 is free
    assert [course.id for course in result] == ["c1", "c3"]


def test_every_filtered_course_satisfies_all_predicates():
    index = _catalog_index()
    options = FilterOptions(category="Lập trình", min_price=300_000, max_price=2_000_000, rating=4.3)
    result = index.filter(index.courses, options)
    assert result
    for course in result:
        assert course.category == "Lập trình"
        assert 300_000 <= course.effective_price <= 2_000_000
        assert course.rating >= 4.3


def test_filter_options_ignore_malformed_numbers():
    options = FilterOptions(min_price="abc", max_price="", rating="high", page="-3", limit="zero")
    assert options.min_price == 0
    assert options.max_price == 5_000_000
    assert options.rating is None
    assert options.page == 1
    assert options.limit == 12


def test_sort_rating_is_non_increasing():
    index = _catalog_index()
    ratings = [course.rating for course in index.sort(index.courses, "rating")]
    assert ratings == sorted(ratings, reverse=True)


def test_sort_keys():
    index = _catalog_index()
    courses = index.courses
    assert [c.id for c in index.sort(courses, "price")] == ["c3", "c1", "c2", "c4"]
    assert [c.id for c in index.sort(courses, "price_desc")] == ["c4", "c2", "c1", "c3"]
    assert [c.id for c in index.sort(courses, "reviews")] == ["c3", "c4", "c1", "c2"]
    # rating * ln(reviews + 1)
    assert [c.id for c in index.sort(courses, "popularity")] == ["c3", "c4", "c1", "c2"]
    # missing or unparseable dates sort last
    assert [c.id for c in index.sort(courses, "date")] == ["c2", "c1", "c3", "c4"]
    assert [c.id for c in index.sort(courses, "title")] == ["c4", "c1", "c2", "c3"]
    assert [c.id for c in index.sort(courses, "no-such-key")] == ["c4", "c1", "c2", "c3"]


def test_paginate_second_page_of_title_sorted_courses():
    index = _three_course_index()
    ordered = index.sort(index.courses, "title")
    page, pagination = index.paginate(ordered, page=2, limit=1)
    assert [course.id for course in page] == ["c"]
    assert pagination.total_pages == 3
    assert pagination.total_courses == 3
    assert pagination.current_page == 2
    assert pagination.per_page == 1


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
def test_pages_concatenate_to_the_full_list(limit):
    index = _catalog_index()
    ordered = index.sort(index.courses, "price")
    first, pagination = index.paginate(ordered, page=1, limit=limit)
    pages = [first]
    for page in range(2, pagination.total_pages + 1):
        pages.append(index.paginate(ordered, page=page, limit=limit)[0])
    assert all(len(chunk) <= limit for chunk in pages)
    assert [c for chunk in pages for c in chunk] == ordered


def test_paginate_out_of_range_is_empty():
    index = _three_course_index()
    page, pagination = index.paginate(list(index.courses), page=9, limit=2)
    assert page == []
    assert pagination.total_pages == 2


def test_get_courses_combines_search_filter_sort_and_pagination():
    index = _catalog_index()
    result = index.get_courses(FilterOptions(q="python", sort="rating", limit=1))
    assert [c.id for c in result.courses] == ["c2"]
    assert result.pagination.total_courses == 2
    assert result.pagination.total_pages == 2
    assert result.courses[0].instructor.fullname == "Trần Văn Khoa"


def test_get_courses_with_relevance_sort_keeps_ranking():
    index = _three_course_index()
    result = index.get_courses(FilterOptions(q="advanced web", sort="relevance"))
    assert [c.id for c in result.courses] == ["b", "a"]


def test_enrich_uses_placeholder_for_unknown_instructor():
    index = _catalog_index()
    for course in index.courses:
        assert index.enrich(course).instructor is not None
    ghost = index.enrich(next(c for c in index.courses if c.id == "c4"))
    assert ghost.instructor.id == "ghost"
    assert ghost.instructor.fullname == "Unknown Instructor"


def test_get_by_id_round_trips_course_fields():
    index = _catalog_index()
    for course in index.courses:
        details = index.get_by_id(course.id)
        assert details is not None
        assert details.model_dump(include=set(Course.model_fields)) == course.model_dump()


def test_get_by_id_joins_reviews_related_and_stats():
    index = _catalog_index()
    details = index.get_by_id("c1")
    assert [r.user.username for r in details.reviews] == ["tuan", "unknown"]
    assert details.reviews[1].user.fullname == "Anonymous User"
    assert [c.id for c in details.related_courses] == ["c2", "c4"]
    assert details.stats.total_reviews == 2
    assert details.stats.average_rating == pytest.approx(4.5)

    lonely = index.get_by_id("c3")
    assert lonely.related_courses == []
    assert lonely.stats.total_reviews == 0
    assert lonely.stats.average_rating == 0


def test_get_by_id_missing_returns_none():
    assert _catalog_index().get_by_id("nope") is None


def test_slugs_are_backfilled_and_unique():
    index = CatalogIndex(
        courses=[
            {"id": "1", "title": "Tiếng Việt cơ bản"},
            {"id": "2", "title": "Tiếng Việt Cơ Bản!"},
            {"id": "3", "title": "Custom", "slug": "my-slug"},
        ]
    )
    assert [c.slug for c in index.courses] == ["tieng-viet-co-ban", "tieng-viet-co-ban-2", "my-slug"]
    assert index.get_by_slug("tieng-viet-co-ban-2").id == "2"
    assert index.get_by_slug("missing") is None


def test_ingestion_drops_courses_without_id_or_title(caplog):
    with caplog.at_level(logging.WARNING):
        index = CatalogIndex(
            courses=[
                {"id": "ok", "title": "Kept"},
                {"id": "", "title": "No id"},
                {"id": "x", "title": ""},
                {"id": "bad", "title": "Rating out of range", "rating": 9},
                None,
            ]
        )
    assert [c.id for c in index.courses] == ["ok"]
    assert "Discarded 3 course records" in caplog.text


def test_discount_above_price_is_kept_and_logged(caplog):
    with caplog.at_level(logging.WARNING):
        index = CatalogIndex(courses=[{"id": "d", "title": "Odd", "price": 100, "discount_price": 150}])
    assert index.courses[0].effective_price == 150
    assert "above price" in caplog.text


def test_featured_courses():
    index = _catalog_index()
    assert [c.id for c in index.get_featured()] == ["c2", "c1"]
    assert [c.id for c in index.get_featured(limit=1)] == ["c2"]


def test_categories_levels_and_taxonomy_tiers():
    index = _catalog_index()
    assert index.get_categories() == ["Lập trình", "Thiết kế"]
    assert index.get_levels() == ["Cơ bản", "Nâng cao", "Trung cấp"]
    assert [c.id for c in index.get_category_taxonomy()] == ["programming", "design"]
    assert [c.id for c in index.get_category_taxonomy("main")] == ["programming"]
    assert [c.id for c in index.get_category_taxonomy("other")] == ["design"]
    assert index.get_category_by_name("Thiết kế").id == "design"
    assert index.get_category_by_name("Nấu ăn") is None


def test_sub_categories_with_counts():
    index = _catalog_index()
    subs = index.get_sub_categories("Lập trình")
    assert [(s.name, s.course_count, s.category) for s in subs] == [
        ("Python", 2, "Lập trình"),
        ("Go", 1, "Lập trình"),
    ]
    assert [s.category for s in index.get_sub_categories()] == ["all", "all"]


def test_instructor_with_courses_and_summaries():
    index = _catalog_index()
    khoa = index.get_instructor_with_courses("i1")
    assert [c.id for c in khoa.courses] == ["c1", "c2"]
    assert khoa.stats.total_courses == 2
    assert khoa.stats.total_students == 130
    assert khoa.stats.total_reviews == 3
    assert khoa.stats.average_rating == pytest.approx(4.0)
    assert index.get_instructor_with_courses("ghost") is None

    summaries = {s.id: s for s in index.get_all_instructors()}
    assert summaries["i2"].course_count == 1
    assert summaries["i2"].total_students == 900
    assert summaries["i2"].average_rating == 0


def test_price_range_buckets():
    index = _catalog_index()
    price_range = index.get_price_range()
    assert price_range.min == 400_000
    assert price_range.max == 2_000_000
    assert price_range.average == 1_300_000
    dumped = price_range.ranges.model_dump(by_alias=True)
    assert dumped == {"free": 1, "under_500k": 1, "500k_1m": 0, "1m_2m": 1, "over_2m": 1}


def test_price_range_without_paid_courses_is_zero():
    index = CatalogIndex(courses=[{"id": "f", "title": "Free", "price": 0}])
    assert index.get_price_range().max == 0


def test_stats():
    stats = _catalog_index().get_stats()
    assert stats.total_courses == 4
    assert stats.total_instructors == 2
    assert stats.total_students == 1330
    assert stats.total_reviews == 3
    assert stats.average_rating == 4.0
    assert stats.categories_count == 2
    assert stats.featured_courses == 1


def test_empty_index_never_raises():
    index = CatalogIndex()
    assert index.search("anything") == []
    assert index.get_courses().courses == []
    assert index.get_courses().pagination.total_pages == 0
    assert index.get_featured() == []
    assert index.get_stats().average_rating == 0
    assert index.get_price_range().average == 0
    assert index.health().data_loaded.courses == 0


def test_ingestion_keeps_courses_with_null_numbers_and_flags(caplog):
    with caplog.at_level(logging.WARNING):
        index = CatalogIndex(
            courses=[
                {"id": "k", "title": "Kept", "price": 100, "rating": 4.0},
                {"id": "n1", "title": "No rating", "rating": None},
                {"id": "n2", "title": "No review count", "number_of_reviews": None},
                {"id": "n3", "title": "No flags", "is_bestseller": None, "is_new": None},
                {"id": "n4", "title": "No price", "price": None, "duration_hours": None},
            ]
        )
    assert [c.id for c in index.courses] == ["k", "n1", "n2", "n3", "n4"]
    assert "Skipping invalid course" not in caplog.text
    by_id = {c.id: c for c in index.courses}
    assert by_id["n1"].rating == 0
    assert by_id["n2"].number_of_reviews == 0
    assert by_id["n3"].is_bestseller is False
    assert by_id["n4"].effective_price == 0
    # null ratings sort like a zero rating
    assert index.sort(index.courses, "rating")[0].id == "k"


def test_derived_slugs_never_shadow_provided_ones():
    index = CatalogIndex(
        courses=[
            {"id": "1", "title": "Intro"},
            {"id": "2", "title": "Intro"},
            {"id": "3", "title": "Something else", "slug": "intro-2"},
        ]
    )
    slugs = [c.slug for c in index.courses]
    assert slugs == ["intro", "intro-3", "intro-2"]
    assert index.get_by_slug("intro-2").id == "3"
    assert index.get_by_slug("intro-3").id == "2"


def test_date_sort_compares_mixed_offsets_in_utc():
    index = CatalogIndex(
        courses=[
            # 2024-01-01T20:00 UTC
            {"id": "early", "title": "Early", "last_updated": "2024-01-02T01:00+05:00"},
            {"id": "late", "title": "Late", "last_updated": "2024-01-01T23:00Z"},
            {"id": "naive", "title": "Naive", "last_updated": "2023-12-31"},
        ]
    )
    assert [c.id for c in index.sort(index.courses, "date")] == ["late", "early", "naive"]


def test_category_counts_in_first_seen_order():
    index = _catalog_index()
    counts = [(c.name, c.course_count) for c in index.get_category_counts()]
    assert counts == [("Lập trình", 3), ("Thiết kế", 1)]
    assert CatalogIndex().get_category_counts() == []
