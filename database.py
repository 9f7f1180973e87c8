"""
Snapshot persistence.

The whole dataset lives in one JSON file. It is read once at startup and
rewritten wholesale after every mutation. Writes run on a single background
worker, so requests never wait on disk and writes land in submission order.
"""

import json
import logging
import os
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

import config
from auth import get_password_hash
from schemas import MovieRecord, Snapshot, UserRecord

logger = logging.getLogger(__name__)

DEFAULT_MOVIES = [
    {
        "id": 1,
        "title": "The Dark Knight",
        "slug": "the-dark-knight",
        "genre": "Action",
        "rating": 9.0,
        "year": 2008,
        "director": "Christopher Nolan",
        "duration": "152 min",
        "poster": "https://images.unsplash.com/photo-1489599162993-6c5c82dfee8a?w=400&h=600&fit=crop",
        "description": "When the menace known as the Joker emerges, Batman must accept one of the greatest "
                       "psychological and physical tests of his ability to fight injustice.",
        "review": "Christopher Nolan's masterpiece delivers a gripping tale of heroism and chaos that "
                  "transcends the superhero genre.",
        "reviewer": "Alex Thompson",
        "reviewerTitle": "Senior Film Critic",
        "reviewerEmail": "alex@cinereview.com",
        "publishedAt": "2024-01-15T10:00:00Z",
        "status": "published",
        "tags": ["superhero", "psychological thriller", "masterpiece"],
        "featured": True,
        "views": 1520,
        "likes": 89,
        "metaDescription": "Expert review of The Dark Knight - Christopher Nolan's superhero masterpiece",
        "metaKeywords": ["Dark Knight", "Batman", "Joker", "Heath Ledger", "Christopher Nolan"],
    },
    {
        "id": 2,
        "title": "Pulp Fiction",
        "slug": "pulp-fiction",
        "genre": "Drama",
        "rating": 8.9,
        "year": 1994,
        "director": "Quentin Tarantino",
        "duration": "154 min",
        "poster": "https://images.unsplash.com/photo-1440404653325-ab127d49abc1?w=400&h=600&fit=crop",
        "description": "The lives of two mob hitmen, a boxer, a gangster and his wife, and a pair of diner "
                       "bandits intertwine in four tales of violence and redemption.",
        "review": "Quentin Tarantino's non-linear narrative creates a unique cinematic experience that keeps "
                  "viewers engaged from start to finish.",
        "reviewer": "Sarah Martinez",
        "reviewerTitle": "Film Studies Professor",
        "reviewerEmail": "sarah@cinereview.com",
        "publishedAt": "2024-01-10T14:30:00Z",
        "status": "published",
        "tags": ["crime", "nonlinear", "classic"],
        "featured": False,
        "views": 983,
        "likes": 67,
        "metaDescription": "Professional review of Pulp Fiction - Tarantino's crime masterpiece",
        "metaKeywords": ["Pulp Fiction", "Tarantino", "John Travolta", "Samuel L Jackson"],
    },
]

DEFAULT_SETTINGS = {
    "siteName": "CineReview Pro",
    "siteDescription": "Professional movie reviews and ratings",
    "contactEmail": "contact@cinereview.com",
    "socialMedia": {
        "twitter": "@cinereviewpro",
        "facebook": "cinereviewpro",
        "instagram": "cinereviewpro",
    },
}


def default_snapshot() -> Snapshot:
    return Snapshot.model_validate({
        "movies": DEFAULT_MOVIES,
        "users": [{
            "id": 1,
            "email": config.ADMIN_EMAIL,
            "password": get_password_hash(config.ADMIN_PASSWORD),
            "role": "admin",
            "name": config.ADMIN_NAME,
            "createdAt": "2024-01-01T00:00:00Z",
        }],
        "reviews": [],
        "settings": DEFAULT_SETTINGS,
    })


class Database:
    def __init__(self, path=None):
        self.path = Path(path or config.DATA_FILE)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer")

    def load(self) -> Snapshot:
        """Read the snapshot.

        Missing sections fall back to the built-in defaults. Records that do
        not validate are logged and skipped, and the original file is copied
        to ``<name>.corrupt`` before anything can overwrite it.
        """
        if not self.path.exists():
            logger.info("No existing data file at %s, using default data", self.path)
            return default_snapshot()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
        except (OSError, ValueError):
            logger.exception("Could not read data file %s, using default data", self.path)
            self._keep_copy()
            return default_snapshot()

        sections: Dict[str, Any] = {}
        damaged = False
        for key, model in (("movies", MovieRecord), ("users", UserRecord)):
            items = raw.get(key)
            if items is None:
                continue
            if not isinstance(items, list):
                logger.error("Section %r in %s is not a list, using default data for it", key, self.path)
                damaged = True
                continue
            sections[key] = []
            for index, item in enumerate(items):
                try:
                    sections[key].append(model.model_validate(item))
                except PydanticValidationError as e:
                    logger.error("Skipping %s[%d] in %s: %s", key, index, self.path, e)
                    damaged = True
        for key, kind in (("reviews", list), ("settings", dict)):
            value = raw.get(key)
            if value is None:
                continue
            if not isinstance(value, kind):
                logger.error("Section %r in %s is not a %s, using default data for it", key, self.path, kind.__name__)
                damaged = True
                continue
            sections[key] = value

        if damaged:
            self._keep_copy()
        if any(key not in sections for key in ("movies", "users", "settings")):
            sections = {**dict(default_snapshot()), **sections}
        snapshot = Snapshot(**sections)
        logger.info("Loaded %d movies from %s", len(snapshot.movies), self.path)
        return snapshot

    def _keep_copy(self) -> None:
        backup = self.path.with_name(self.path.name + ".corrupt")
        try:
            shutil.copyfile(self.path, backup)
        except OSError:
            logger.exception("Could not copy %s to %s", self.path, backup)
        else:
            logger.warning("Original data file kept at %s", backup)

    def save(self, payload: str) -> None:
        """Write serialized snapshot text. Failures are logged, never raised."""
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            logger.exception("Error saving data to %s", self.path)

    def save_in_background(self, payload: str) -> None:
        self._executor.submit(self.save, payload)

    def flush(self) -> None:
        """Block until every queued write has finished."""
        self._executor.submit(lambda: None).result()

    def close(self) -> None:
        self._executor.shutdown(wait=True)
