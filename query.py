"""
Listing pipeline: visibility, attribute filters, search, sort, paginate.

Every stage takes and returns a plain list and never touches the records,
so the pipeline can run on a snapshot without holding the store lock.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import config
from errors import ValidationError
from schemas import MovieRecord, PageInfo


@dataclass
class MovieQuery:
    page: int = 1
    limit: int = config.DEFAULT_PAGE_SIZE
    public: bool = True
    status: Optional[str] = None
    genre: Optional[str] = None
    rating: Optional[str] = None
    year: Optional[int] = None
    featured: Optional[str] = None
    search: Optional[str] = None
    sort: str = "publishedAt"
    order: str = "desc"


def filter_visible(records: Sequence[MovieRecord], public: bool = True, status: Optional[str] = None) -> List[MovieRecord]:
    if public:
        return [m for m in records if m.status == "published"]
    if status and status != "all":
        return [m for m in records if m.status == status]
    return list(records)


def parse_min_rating(rating: str) -> float:
    try:
        return float(rating.strip().rstrip("+"))
    except ValueError:
        raise ValidationError(f"Invalid rating filter: {rating}")


def apply_filters(records: Sequence[MovieRecord], genre: Optional[str] = None, rating: Optional[str] = None,
                  year: Optional[int] = None, featured: Optional[str] = None) -> List[MovieRecord]:
    result = list(records)
    if genre and genre != "all":
        wanted = genre.lower()
        result = [m for m in result if m.genre.lower() == wanted]
    if rating:
        threshold = parse_min_rating(rating)
        result = [m for m in result if m.rating >= threshold]
    if year is not None:
        result = [m for m in result if m.year == year]
    if featured == "true":
        result = [m for m in result if m.featured]
    return result


def matches(movie: MovieRecord, term: str) -> bool:
    fields = [movie.title, movie.description, movie.genre, movie.director, movie.reviewer, *movie.tags]
    return any(term in (f or "").lower() for f in fields)


def search(records: Sequence[MovieRecord], term: Optional[str]) -> List[MovieRecord]:
    if not term:
        return list(records)
    term = term.lower()
    return [m for m in records if matches(m, term)]


def sort_records(records: Sequence[MovieRecord], field: str = "publishedAt", order: str = "desc") -> List[MovieRecord]:
    """Stable sort; missing values rank below any present value."""
    name = MovieRecord.field_name(field)
    if name is None:
        return list(records)

    def key(movie):
        value = getattr(movie, name)
        if value is None:
            return (0, 0)
        if isinstance(value, str):
            value = value.lower()
        return (1, value)

    # reverse=True keeps equal keys in their original order
    return sorted(records, key=key, reverse=order.lower() == "desc")


def paginate(records: Sequence[MovieRecord], page: int = 1, limit: int = config.DEFAULT_PAGE_SIZE) -> Tuple[List[MovieRecord], PageInfo]:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    total = len(records)
    total_pages = math.ceil(total / limit)
    offset = (page - 1) * limit
    info = PageInfo(
        current_page=page,
        total_pages=total_pages,
        total_movies=total,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
        limit=limit,
    )
    return list(records[offset:offset + limit]), info


def run_query(records: Sequence[MovieRecord], q: MovieQuery) -> Tuple[List[MovieRecord], PageInfo]:
    result = filter_visible(records, public=q.public, status=q.status)
    result = apply_filters(result, genre=q.genre, rating=q.rating, year=q.year, featured=q.featured)
    result = search(result, q.search)
    result = sort_records(result, q.sort, q.order)
    return paginate(result, q.page, q.limit)
