"""SQLite-backed durable records: footage cache, media library, generations.

Uses aiosqlite for async database operations. Search terms of cached clips
live in their own table with one row per (clip, term), so merging a newly
discovered term is an ``INSERT OR IGNORE``: two jobs rediscovering the same
clip concurrently end with the union of their terms whatever the order.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

import aiosqlite

from models.generation import Orientation
from models.media import CachedFootageClip, MediaLibraryItem, normalize_tags
from services.term_cache import TermScoredCache

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = "data/reelsmith.db"

CLIP_CANDIDATE_LIMIT = 50
MEDIA_CANDIDATE_LIMIT = 100
UNCATEGORIZED_TERM = "uncategorized"

GENERATION_STATUSES = ("pending", "processing", "completed", "failed")
_GENERATION_FIELDS = ("title", "narration", "scenes", "status", "result_path", "error", "notices")
_MEDIA_FIELDS = ("title", "description", "tags", "thumbnail_path", "ai_analysis")

SCHEMA = """
CREATE TABLE IF NOT EXISTS cached_clips (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    provider_id INTEGER NOT NULL UNIQUE,
    source TEXT NOT NULL DEFAULT 'pexels',
    file_path TEXT NOT NULL,
    duration REAL NOT NULL DEFAULT 0,
    orientation TEXT NOT NULL,
    quality TEXT NOT NULL DEFAULT 'hd',
    width INTEGER NOT NULL DEFAULT 0,
    height INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS clip_search_terms (
    provider_id INTEGER NOT NULL,
    term TEXT NOT NULL,
    PRIMARY KEY (provider_id, term)
);

CREATE INDEX IF NOT EXISTS idx_cached_clips_orientation
ON cached_clips (orientation);

CREATE TABLE IF NOT EXISTS media_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    file_path TEXT NOT NULL,
    thumbnail_path TEXT,
    source TEXT NOT NULL DEFAULT 'upload',
    duration REAL NOT NULL DEFAULT 0,
    width INTEGER NOT NULL DEFAULT 0,
    height INTEGER NOT NULL DEFAULT 0,
    orientation TEXT NOT NULL,
    tags JSON NOT NULL DEFAULT '[]',
    ai_analysis TEXT,
    file_size INTEGER NOT NULL DEFAULT 0,
    mime_type TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_media_items_orientation
ON media_items (orientation);

CREATE TABLE IF NOT EXISTS generations (
    id TEXT PRIMARY KEY,
    prompt TEXT NOT NULL,
    options JSON NOT NULL,
    title TEXT,
    narration TEXT,
    scenes JSON,
    status TEXT NOT NULL DEFAULT 'pending',
    result_path TEXT,
    error TEXT,
    notices JSON,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_generations_created_at
ON generations (created_at DESC);
"""


class RecordStore:
    """Async SQLite store shared by every generation job.

    Provides persistent storage for the footage cache, the curated media
    library and generation status rows.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize record store with database path.

        Args:
            db_path: Path to SQLite database file. Parent directory
                     will be created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self.db: aiosqlite.Connection | None = None

        self.clip_cache: TermScoredCache[CachedFootageClip] = TermScoredCache(
            self.list_clips,
            lambda clip: clip.search_terms,
            candidate_limit=CLIP_CANDIDATE_LIMIT,
        )
        self.media_cache: TermScoredCache[MediaLibraryItem] = TermScoredCache(
            self.list_media_items,
            lambda item: item.search_terms,
            candidate_limit=MEDIA_CANDIDATE_LIMIT,
        )

    async def connect(self) -> None:
        """Open the database connection and create the schema.

        Enables WAL mode so several workers can read while one writes.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(str(self.db_path))
        self.db.row_factory = aiosqlite.Row

        await self.db.execute("PRAGMA journal_mode=WAL")
        await self.db.executescript(SCHEMA)
        await self.db.commit()
        logger.info(f"Record store connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Record store connection closed")

    def _conn(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    # ------------------------------------------------------------------
    # Footage cache
    # ------------------------------------------------------------------

    async def get_clip(self, provider_id: int) -> Optional[CachedFootageClip]:
        """Find a cached clip by its provider-assigned ID."""
        db = self._conn()
        async with db.execute(
            "SELECT * FROM cached_clips WHERE provider_id = ?", (provider_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        terms = await self._load_terms([provider_id])
        return self._row_to_clip(row, terms.get(provider_id, []))

    async def save_clip(self, clip: CachedFootageClip) -> CachedFootageClip:
        """Insert a clip, or merge it into the existing row for its provider ID.

        The file path is refreshed and the search terms are unioned with the
        stored ones; nothing already stored is removed.

        Returns:
            The stored clip with its merged term set
        """
        db = self._conn()
        now = datetime.now().isoformat()

        await db.execute(
            """
            INSERT INTO cached_clips (
                provider_id, source, file_path, duration, orientation,
                quality, width, height, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider_id) DO UPDATE SET
                file_path = excluded.file_path,
                updated_at = excluded.updated_at
            """,
            (
                clip.provider_id,
                clip.source,
                clip.file_path,
                clip.duration,
                Orientation(clip.orientation).value,
                clip.quality,
                clip.width,
                clip.height,
                now,
                now,
            ),
        )

        terms = normalize_tags(clip.search_terms)
        if not terms:
            existing = await self._load_terms([clip.provider_id])
            if not existing.get(clip.provider_id):
                terms = [UNCATEGORIZED_TERM]
        await self._insert_terms(db, clip.provider_id, terms)
        await db.commit()

        stored = await self.get_clip(clip.provider_id)
        logger.debug(
            f"Saved clip {clip.provider_id} with terms {stored.search_terms if stored else terms}"
        )
        return stored

    async def add_search_term(self, provider_id: int, term: str) -> None:
        """Merge one search term into a cached clip's term set."""
        db = self._conn()
        await self._insert_terms(db, provider_id, normalize_tags([term]))
        await db.commit()

    async def list_clips(
        self, orientation: Optional[Orientation] = None, limit: int = CLIP_CANDIDATE_LIMIT
    ) -> list[CachedFootageClip]:
        """List the most recently cached clips, returned in insertion order.

        Args:
            orientation: Only clips with this orientation (None for any)
            limit: Maximum number of clips
        """
        db = self._conn()
        query = "SELECT * FROM cached_clips"
        params: list[Any] = []
        if orientation is not None:
            query += " WHERE orientation = ?"
            params.append(Orientation(orientation).value)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        async with db.execute(query, params) as cursor:
            rows = list(reversed(await cursor.fetchall()))

        terms = await self._load_terms([row["provider_id"] for row in rows])
        return [self._row_to_clip(row, terms.get(row["provider_id"], [])) for row in rows]

    async def find_clips(
        self, query: str, orientation: Optional[Orientation] = None, limit: int = 5
    ) -> list[CachedFootageClip]:
        """Term-scored lookup in the footage cache."""
        return await self.clip_cache.find(query, orientation, limit)

    async def delete_clip(self, provider_id: int) -> bool:
        db = self._conn()
        async with db.execute(
            "DELETE FROM cached_clips WHERE provider_id = ? RETURNING id", (provider_id,)
        ) as cursor:
            row = await cursor.fetchone()
        await db.execute("DELETE FROM clip_search_terms WHERE provider_id = ?", (provider_id,))
        await db.commit()
        return row is not None

    async def _insert_terms(
        self, db: aiosqlite.Connection, provider_id: int, terms: Iterable[str]
    ) -> None:
        await db.executemany(
            "INSERT OR IGNORE INTO clip_search_terms (provider_id, term) VALUES (?, ?)",
            [(provider_id, term) for term in terms],
        )

    async def _load_terms(self, provider_ids: list[int]) -> dict[int, list[str]]:
        if not provider_ids:
            return {}
        db = self._conn()
        placeholders = ", ".join("?" for _ in provider_ids)
        async with db.execute(
            f"SELECT provider_id, term FROM clip_search_terms "
            f"WHERE provider_id IN ({placeholders}) ORDER BY rowid",
            provider_ids,
        ) as cursor:
            rows = await cursor.fetchall()

        terms: dict[int, list[str]] = {}
        for row in rows:
            terms.setdefault(row["provider_id"], []).append(row["term"])
        return terms

    @staticmethod
    def _row_to_clip(row: aiosqlite.Row, terms: list[str]) -> CachedFootageClip:
        return CachedFootageClip(
            id=row["id"],
            provider_id=row["provider_id"],
            source=row["source"],
            file_path=row["file_path"],
            search_terms=list(terms),
            duration=row["duration"],
            orientation=Orientation(row["orientation"]),
            quality=row["quality"],
            width=row["width"],
            height=row["height"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Media library
    # ------------------------------------------------------------------

    async def create_media_item(self, item: MediaLibraryItem) -> MediaLibraryItem:
        """Insert a media library item and return it with its ID."""
        db = self._conn()
        now = datetime.now().isoformat()
        async with db.execute(
            """
            INSERT INTO media_items (
                title, description, file_path, thumbnail_path, source, duration,
                width, height, orientation, tags, ai_analysis, file_size,
                mime_type, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                item.title,
                item.description,
                item.file_path,
                item.thumbnail_path,
                item.source,
                item.duration,
                item.width,
                item.height,
                Orientation(item.orientation).value,
                json.dumps(normalize_tags(item.tags)),
                item.ai_analysis,
                item.file_size,
                item.mime_type,
                now,
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await db.commit()

        logger.info(f"Added media item {row[0]}: {item.title}")
        return await self.get_media_item(row[0])

    async def get_media_item(self, item_id: int) -> Optional[MediaLibraryItem]:
        db = self._conn()
        async with db.execute("SELECT * FROM media_items WHERE id = ?", (item_id,)) as cursor:
            row = await cursor.fetchone()
        return self._row_to_media(row) if row else None

    async def list_media_items(
        self, orientation: Optional[Orientation] = None, limit: int = MEDIA_CANDIDATE_LIMIT
    ) -> list[MediaLibraryItem]:
        """List the most recent media items, returned in insertion order."""
        db = self._conn()
        query = "SELECT * FROM media_items"
        params: list[Any] = []
        if orientation is not None:
            query += " WHERE orientation = ?"
            params.append(Orientation(orientation).value)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_media(row) for row in reversed(rows)]

    async def search_media_items(
        self, query: str, orientation: Optional[Orientation] = None, limit: int = 5
    ) -> list[MediaLibraryItem]:
        """Term-scored lookup in the media library."""
        return await self.media_cache.find(query, orientation, limit)

    async def update_media_item(self, item_id: int, **fields: Any) -> Optional[MediaLibraryItem]:
        """Update editable fields (title, description, tags, thumbnail_path, ai_analysis)."""
        db = self._conn()
        updates = {k: v for k, v in fields.items() if k in _MEDIA_FIELDS and v is not None}
        if "tags" in updates:
            updates["tags"] = json.dumps(normalize_tags(updates["tags"]))
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            await db.execute(
                f"UPDATE media_items SET {assignments} WHERE id = ?",
                (*updates.values(), item_id),
            )
            await db.commit()
        return await self.get_media_item(item_id)

    async def delete_media_item(self, item_id: int) -> bool:
        db = self._conn()
        async with db.execute(
            "DELETE FROM media_items WHERE id = ? RETURNING id", (item_id,)
        ) as cursor:
            row = await cursor.fetchone()
        await db.commit()
        if row is not None:
            logger.info(f"Deleted media item {item_id}")
            return True
        return False

    @staticmethod
    def _row_to_media(row: aiosqlite.Row) -> MediaLibraryItem:
        return MediaLibraryItem(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            file_path=row["file_path"],
            thumbnail_path=row["thumbnail_path"],
            source=row["source"],
            duration=row["duration"],
            width=row["width"],
            height=row["height"],
            orientation=Orientation(row["orientation"]),
            tags=json.loads(row["tags"] or "[]"),
            ai_analysis=row["ai_analysis"],
            file_size=row["file_size"],
            mime_type=row["mime_type"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Generation status rows
    # ------------------------------------------------------------------

    async def create_generation(
        self, generation_id: str, prompt: str, options: dict[str, Any]
    ) -> dict[str, Any]:
        db = self._conn()
        now = datetime.now().isoformat()
        await db.execute(
            "INSERT INTO generations (id, prompt, options, status, created_at, updated_at) "
            "VALUES (?, ?, ?, 'pending', ?, ?)",
            (generation_id, prompt, json.dumps(options), now, now),
        )
        await db.commit()
        logger.info(f"Created generation {generation_id}")
        return await self.get_generation(generation_id)

    async def update_generation(self, generation_id: str, **fields: Any) -> Optional[dict[str, Any]]:
        """Update status and result fields of a generation row.

        Raises:
            ValueError: If ``status`` is not a known generation status
        """
        db = self._conn()
        status = fields.get("status")
        if status is not None and status not in GENERATION_STATUSES:
            raise ValueError(f"Unknown generation status: {status}")

        updates = {k: v for k, v in fields.items() if k in _GENERATION_FIELDS}
        for key in ("scenes", "notices"):
            if key in updates:
                updates[key] = json.dumps(updates[key])
        updates["updated_at"] = datetime.now().isoformat()

        assignments = ", ".join(f"{column} = ?" for column in updates)
        await db.execute(
            f"UPDATE generations SET {assignments} WHERE id = ?",
            (*updates.values(), generation_id),
        )
        await db.commit()
        return await self.get_generation(generation_id)

    async def get_generation(self, generation_id: str) -> Optional[dict[str, Any]]:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM generations WHERE id = ?", (generation_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_generation(row) if row else None

    async def list_generations(self, status: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        """List generations, newest first."""
        db = self._conn()
        query = "SELECT * FROM generations"
        params: list[Any] = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_generation(row) for row in rows]

    @staticmethod
    def _row_to_generation(row: aiosqlite.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "prompt": row["prompt"],
            "options": json.loads(row["options"]),
            "title": row["title"],
            "narration": row["narration"],
            "scenes": json.loads(row["scenes"]) if row["scenes"] else [],
            "status": row["status"],
            "result_path": row["result_path"],
            "error": row["error"],
            "notices": json.loads(row["notices"]) if row["notices"] else [],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }
