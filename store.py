"""
In-memory record store for movies, settings and users.

The store owns the live collections. Every mutation runs under one writer
lock (FastAPI serves sync endpoints from a threadpool), replaces the affected
record with a new immutable value and then calls the change hook, which the
site wires to a background snapshot write.
"""

import json
import logging
import re
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from errors import DuplicateSlugError, NotFoundError, ValidationError
from schemas import MovieRecord, Snapshot, UserRecord, utcnow

logger = logging.getLogger(__name__)

_LIST_FIELDS = ("tags", "meta_keywords")


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def _parse_list(field: str, value: Any) -> List[str]:
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except ValueError:
            raise ValidationError(f"Invalid {field}: expected a JSON array")
    if not isinstance(value, list):
        raise ValidationError(f"Invalid {field}: expected a JSON array")
    return [str(v) for v in value]


def normalize_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map wire keys to record attributes and coerce form-encoded values.

    Unknown keys are dropped. `id` and `slug` are never taken from input.
    """
    fields = {}
    for key, value in data.items():
        name = MovieRecord.field_name(key)
        if name is None or name in ("id", "slug"):
            continue
        fields[name] = value

    for name in _LIST_FIELDS:
        if name in fields:
            fields[name] = _parse_list(name, fields[name])
    if isinstance(fields.get("featured"), str):
        fields["featured"] = fields["featured"].strip().lower() == "true"
    return fields


def _build(fields: Dict[str, Any]) -> MovieRecord:
    try:
        return MovieRecord.model_validate(fields)
    except PydanticValidationError as e:
        err = e.errors()[0]
        where = ".".join(str(p) for p in err["loc"])
        raise ValidationError(f"Invalid {where}: {err['msg']}")


class MovieStore:
    def __init__(self, movies: Iterable[MovieRecord] = (), on_change: Optional[Callable[[], None]] = None, lock=None):
        self._movies: List[MovieRecord] = list(movies)
        self._on_change = on_change or (lambda: None)
        self._lock = lock or threading.RLock()

    def all(self) -> Tuple[MovieRecord, ...]:
        with self._lock:
            return tuple(self._movies)

    def __len__(self):
        return len(self._movies)

    def _index_of(self, movie_id: int) -> int:
        for i, movie in enumerate(self._movies):
            if movie.id == movie_id:
                return i
        raise NotFoundError()

    def _slug_taken(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        return any(m.slug == slug and m.id != exclude_id for m in self._movies)

    def _next_id(self) -> int:
        return max((m.id for m in self._movies), default=0) + 1

    def find_by_id_or_slug(self, identifier: str) -> Optional[MovieRecord]:
        movie_id = int(identifier) if identifier.isdecimal() else None
        with self._lock:
            for movie in self._movies:
                if movie.id == movie_id or movie.slug == identifier:
                    return movie
        return None

    def create(self, data: Dict[str, Any]) -> MovieRecord:
        fields = normalize_fields(data)
        if "title" not in fields:
            raise ValidationError("Invalid title: Field required")
        slug = slugify(str(fields["title"]))

        with self._lock:
            if self._slug_taken(slug):
                raise DuplicateSlugError()
            record = _build({
                "status": "draft",
                "views": 0,
                "likes": 0,
                "tags": [],
                "featured": False,
                "published_at": utcnow(),
                **fields,
                "id": self._next_id(),
                "slug": slug,
            })
            self._movies.append(record)
            logger.info("Created movie %s (%s)", record.id, record.slug)
            self._on_change()
        return record

    def update(self, movie_id: int, patch: Dict[str, Any]) -> MovieRecord:
        fields = normalize_fields(patch)

        with self._lock:
            index = self._index_of(movie_id)
            current = self._movies[index]
            merged = current.model_dump()

            if "title" in fields and fields["title"] != current.title:
                slug = slugify(str(fields["title"]))
                if self._slug_taken(slug, exclude_id=movie_id):
                    raise DuplicateSlugError()
                merged["slug"] = slug

            merged.update(fields)
            record = _build(merged)
            self._movies[index] = record
            logger.info("Updated movie %s (%s)", record.id, ", ".join(sorted(fields)) or "no fields")
            self._on_change()
        return record

    def delete(self, movie_id: int) -> None:
        with self._lock:
            removed = self._movies.pop(self._index_of(movie_id))
            logger.info("Deleted movie %s (%s)", removed.id, removed.slug)
            self._on_change()

    def record_view(self, movie_id: int) -> MovieRecord:
        with self._lock:
            index = self._index_of(movie_id)
            record = self._movies[index]
            record = record.model_copy(update={"views": record.views + 1})
            self._movies[index] = record
            self._on_change()
        return record


class SettingsStore:
    def __init__(self, settings: Optional[Dict[str, Any]] = None, on_change: Optional[Callable[[], None]] = None, lock=None):
        self._settings = dict(settings or {})
        self._on_change = on_change or (lambda: None)
        self._lock = lock or threading.RLock()

    def get(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._settings)

    def update(self, patch: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self._settings = {**self._settings, **patch}
            self._on_change()
            return dict(self._settings)


class SiteStore:
    """Everything the API serves, loaded from one snapshot and saved back as one."""

    def __init__(self, snapshot: Snapshot, database=None):
        self.database = database
        self._lock = threading.RLock()
        # one lock for the whole site: mutations and snapshotting never interleave
        self.movies = MovieStore(snapshot.movies, on_change=self.persist, lock=self._lock)
        self.settings = SettingsStore(snapshot.settings, on_change=self.persist, lock=self._lock)
        self.users: List[UserRecord] = list(snapshot.users)
        self.reviews: List[Dict[str, Any]] = list(snapshot.reviews)

    def find_user(self, email: str) -> Optional[UserRecord]:
        return next((u for u in self.users if u.email == email), None)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            movies=list(self.movies.all()),
            users=list(self.users),
            reviews=list(self.reviews),
            settings=self.settings.get(),
        )

    def persist(self) -> None:
        if self.database is None:
            return
        with self._lock:
            self.database.save_in_background(self.snapshot().to_json())
