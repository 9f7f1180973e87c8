import itertools

import pytest

from errors import ValidationError
from factories import make_movie
from query import (
    MovieQuery,
    apply_filters,
    filter_visible,
    paginate,
    parse_min_rating,
    run_query,
    search,
    sort_records,
)


@pytest.fixture
def movies():
    return [
        make_movie(1, "The Dark Knight", genre="Action", rating=9.0, year=2008, featured=True,
                   director="Christopher Nolan", tags=["superhero"]),
        make_movie(2, "Pulp Fiction", genre="Drama", rating=8.9, year=1994, director="Quentin Tarantino",
                   reviewer="Sarah Martinez"),
        make_movie(3, "Heat", genre="Action", rating=8.3, year=1995, status="draft", tags=["heist"]),
        make_movie(4, "Alien", genre="Sci-Fi", rating=8.5, year=1979, description="In space no one can hear you scream"),
    ]


def ids(records):
    return [m.id for m in records]


class TestVisibility:
    def test_public_only_published(self, movies):
        assert ids(filter_visible(movies)) == [1, 2, 4]

    def test_admin_status_filter(self, movies):
        assert ids(filter_visible(movies, public=False, status="draft")) == [3]
        assert ids(filter_visible(movies, public=False, status="all")) == [1, 2, 3, 4]
        assert ids(filter_visible(movies, public=False)) == [1, 2, 3, 4]


class TestAttributeFilters:
    def test_genre_is_case_insensitive(self, movies):
        assert ids(apply_filters(movies, genre="action")) == [1, 3]
        assert ids(apply_filters(movies, genre="all")) == [1, 2, 3, 4]

    def test_rating_threshold_with_plus(self, movies):
        assert ids(apply_filters(movies, rating="9+")) == [1]
        assert ids(apply_filters(movies, rating="8.5")) == [1, 2, 4]

    def test_parse_min_rating(self):
        assert parse_min_rating("7+") == 7.0
        assert parse_min_rating(" 8.5 ") == 8.5
        with pytest.raises(ValidationError):
            parse_min_rating("great")

    def test_year(self, movies):
        assert ids(apply_filters(movies, year=1994)) == [2]

    def test_featured_only_for_literal_true(self, movies):
        assert ids(apply_filters(movies, featured="true")) == [1]
        assert ids(apply_filters(movies, featured="yes")) == [1, 2, 3, 4]

    def test_combined(self, movies):
        assert ids(apply_filters(movies, genre="Action", rating="8")) == [1, 3]
        assert ids(apply_filters(movies, genre="Action", rating="8", year=1995)) == [3]

    def test_every_combination_is_an_idempotent_subset(self, movies):
        options = {
            "genre": [None, "Action", "drama"],
            "rating": [None, "8.5+"],
            "year": [None, 1995],
            "featured": [None, "true"],
        }
        everything = set(ids(movies))
        for values in itertools.product(*options.values()):
            kwargs = dict(zip(options, values))
            once = apply_filters(movies, **kwargs)
            assert set(ids(once)) <= everything
            assert ids(apply_filters(once, **kwargs)) == ids(once)


class TestSearch:
    @pytest.mark.parametrize("term, expected", [
        ("dark", [1]),
        ("NOLAN", [1]),
        ("sarah", [2]),
        ("heist", [3]),
        ("scream", [4]),
        ("sci-fi", [4]),
        ("zzz", []),
    ])
    def test_matches_any_field(self, movies, term, expected):
        assert ids(search(movies, term)) == expected

    def test_empty_term(self, movies):
        assert ids(search(movies, "")) == [1, 2, 3, 4]


class TestSort:
    def test_default_is_newest_first(self, movies):
        assert ids(sort_records(movies)) == [4, 3, 2, 1]

    def test_rating_ascending(self, movies):
        assert ids(sort_records(movies, "rating", "asc")) == [3, 4, 2, 1]

    def test_strings_ignore_case(self):
        records = [make_movie(1, "beta"), make_movie(2, "Alpha"), make_movie(3, "gamma")]
        assert ids(sort_records(records, "title", "asc")) == [2, 1, 3]

    def test_stable_for_ties(self):
        records = [make_movie(i, rating=8.0) for i in (5, 2, 9, 1)]
        assert ids(sort_records(records, "rating", "desc")) == [5, 2, 9, 1]
        assert ids(sort_records(records, "rating", "asc")) == [5, 2, 9, 1]

    def test_missing_values_rank_lowest(self):
        records = [make_movie(1, year=None), make_movie(2, year=2001), make_movie(3, year=None)]
        assert ids(sort_records(records, "year", "asc")) == [1, 3, 2]
        assert ids(sort_records(records, "year", "desc")) == [2, 1, 3]

    def test_snake_case_field_names(self, movies):
        assert ids(sort_records(movies, "published_at", "asc")) == [1, 2, 3, 4]

    def test_unknown_field_keeps_order(self, movies):
        assert ids(sort_records(movies, "nonsense")) == [1, 2, 3, 4]


class TestPaginate:
    def test_pages(self):
        records = [make_movie(i) for i in range(1, 6)]
        page, info = paginate(records, page=2, limit=2)
        assert ids(page) == [3, 4]
        assert info.total_pages == 3
        assert info.total_movies == 5
        assert info.has_next_page and info.has_prev_page

    def test_last_and_beyond(self):
        records = [make_movie(i) for i in range(1, 6)]
        page, info = paginate(records, page=3, limit=2)
        assert ids(page) == [5]
        assert not info.has_next_page

        page, info = paginate(records, page=10, limit=2)
        assert page == []
        assert not info.has_next_page
        assert info.has_prev_page

    def test_empty(self):
        page, info = paginate([], page=1, limit=12)
        assert page == []
        assert info.total_pages == 0
        assert not info.has_next_page and not info.has_prev_page

    def test_wire_names(self):
        _, info = paginate([make_movie(1)], page=1, limit=1)
        assert info.to_wire() == {
            "currentPage": 1,
            "totalPages": 1,
            "totalMovies": 1,
            "hasNextPage": False,
            "hasPrevPage": False,
            "limit": 1,
        }

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0)])
    def test_rejects_non_positive(self, page, limit):
        with pytest.raises(ValidationError):
            paginate([], page=page, limit=limit)


def test_run_query_pipeline(movies):
    q = MovieQuery(genre="Action", rating="9+", sort="rating", order="desc", page=1, limit=1)
    page, info = run_query(movies, q)
    assert ids(page) == [1]
    assert info.total_movies == 1


def test_run_query_admin_sees_drafts(movies):
    page, info = run_query(movies, MovieQuery(public=False, search="heist"))
    assert ids(page) == [3]


def test_run_query_does_not_reorder_input(movies):
    run_query(movies, MovieQuery(sort="rating", order="asc"))
    assert ids(movies) == [1, 2, 3, 4]
