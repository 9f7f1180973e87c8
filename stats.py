from typing import Any, Dict, List, Sequence

from schemas import MovieRecord

RECENT_LIMIT = 5


def _published(records: Sequence[MovieRecord]) -> List[MovieRecord]:
    return [m for m in records if m.status == "published"]


def _distinct(values) -> List[str]:
    # dict keeps first-seen order
    return list(dict.fromkeys(values))


def movie_stats(records: Sequence[MovieRecord]) -> Dict[str, Any]:
    published = _published(records)
    genres = _distinct(m.genre for m in published)
    reviewers = _distinct(m.reviewer for m in published)
    average = sum(m.rating for m in published) / len(published) if published else 0
    return {
        "totalMovies": len(published),
        "totalGenres": len(genres),
        "totalReviewers": len(reviewers),
        "averageRating": round(average, 1),
        "genres": genres,
        "reviewers": reviewers,
    }


def featured_movies(records: Sequence[MovieRecord]) -> List[MovieRecord]:
    return [m for m in _published(records) if m.featured]


def recent_movies(records: Sequence[MovieRecord], limit: int = RECENT_LIMIT) -> List[MovieRecord]:
    return sorted(records, key=lambda m: m.published_at, reverse=True)[:limit]


def dashboard(records: Sequence[MovieRecord]) -> Dict[str, Any]:
    return {
        "totalMovies": len(records),
        "publishedMovies": len(_published(records)),
        "draftMovies": sum(1 for m in records if m.status == "draft"),
        "featuredMovies": sum(1 for m in records if m.featured),
        "totalViews": sum(m.views for m in records),
        "totalLikes": sum(m.likes for m in records),
        "recentMovies": [m.to_wire() for m in recent_movies(records)],
    }
