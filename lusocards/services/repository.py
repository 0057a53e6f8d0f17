"""
Repository Pattern - Abstract data access layer.

Folders, flashcards, stories, the user profile and the cross-user global
media caches live behind one async store contract. SQLiteStore is the
bundled implementation; blocking sqlite3 calls run in a thread pool.
"""

import asyncio
import base64
import binascii
import json
import os
import sqlite3
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import aiofiles
import pandas as pd

from ..config import Config
from ..exceptions import PersistenceError
from ..models import Flashcard, Folder, Story, UserProfile, VocabularyItem
from ..utils.helpers import now_ms
from ..utils.logger import setup_logger
from ..utils.parsing import TextParser

logger = setup_logger(__name__)


class BaseStore(ABC):
    """
    Abstract base class for persistent stores.

    Defines the contract for all data access operations. Every method
    raises PersistenceError on backend failure.
    """

    # ---- folders ----

    @abstractmethod
    async def list_folders(self) -> List[Folder]:
        pass

    @abstractmethod
    async def insert_folder(self, folder: Folder) -> None:
        pass

    @abstractmethod
    async def delete_folder(self, folder_id: str) -> None:
        pass

    # ---- flashcards ----

    @abstractmethod
    async def list_flashcards(self) -> List[Flashcard]:
        pass

    @abstractmethod
    async def insert_flashcards(self, cards: List[Flashcard]) -> None:
        pass

    @abstractmethod
    async def update_flashcard_srs(self, card: Flashcard) -> None:
        """Persist difficulty, interval, ease factor and next review date."""
        pass

    @abstractmethod
    async def update_flashcard_folders(self, card_id: str, folder_ids: List[str]) -> None:
        pass

    @abstractmethod
    async def update_flashcard_audio(self, card_id: str, audio: str) -> None:
        pass

    @abstractmethod
    async def update_flashcard_examples(self, card: Flashcard) -> None:
        pass

    @abstractmethod
    async def delete_flashcards(self, card_ids: List[str]) -> None:
        pass

    # ---- stories and profile ----

    @abstractmethod
    async def insert_story(self, story: Story) -> None:
        pass

    @abstractmethod
    async def list_stories(self) -> List[Story]:
        pass

    @abstractmethod
    async def load_profile(self) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> None:
        pass

    # ---- global media cache ----

    @abstractmethod
    async def find_global_audio(self, text: str) -> Optional[str]:
        """URL of canonical audio for normalized text, or None."""
        pass

    @abstractmethod
    async def save_global_audio(self, text: str, payload: str) -> str:
        """Upload payload and register it; returns the canonical URL."""
        pass

    @abstractmethod
    async def find_global_image(self, word: str) -> Optional[str]:
        pass

    @abstractmethod
    async def save_global_image(self, word: str, payload: str) -> str:
        pass


class SQLiteStore(BaseStore):
    """
    SQLite-based store implementation.

    Provides:
    - Transactional updates per operation
    - JSON columns for nested card content
    - Global caches with INSERT OR IGNORE (first write wins)
    - Media "uploads" to MEDIA_DIR, addressed by file:// URLs
    """

    # Schema version for migrations
    SCHEMA_VERSION = 1

    # Flashcard columns holding JSON
    JSON_COLUMNS = ("examples", "conjugation", "folder_ids", "tags")

    FLASHCARD_COLUMNS = (
        "id", "original_term", "translation", "definition", "examples",
        "conjugation", "grammar_notes", "image_url", "image_prompt",
        "audio_base64", "folder_ids", "tags", "frequency", "difficulty",
        "interval", "ease_factor", "next_review_date", "created_at",
    )

    # Thread pool for blocking I/O operations
    _executor = ThreadPoolExecutor(max_workers=2)

    def __init__(self, db_path: Optional[str] = None, media_dir: Optional[str] = None):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file (defaults to Config.DB_PATH)
            media_dir: Directory for uploaded media (defaults to Config.MEDIA_DIR)
        """
        self.db_path = Path(db_path or Config.DB_PATH)
        self.media_dir = Path(media_dir or Config.MEDIA_DIR)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            # Schema versioning table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS folders (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS flashcards (
                    id TEXT PRIMARY KEY,
                    original_term TEXT NOT NULL,
                    translation TEXT,
                    definition TEXT,
                    examples TEXT,
                    conjugation TEXT,
                    grammar_notes TEXT,
                    image_url TEXT,
                    image_prompt TEXT,
                    audio_base64 TEXT,
                    folder_ids TEXT,
                    tags TEXT,
                    frequency TEXT,
                    difficulty TEXT,
                    interval INTEGER DEFAULT 0,
                    ease_factor REAL DEFAULT 2.5,
                    next_review_date INTEGER,
                    created_at INTEGER
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS stories (
                    id TEXT PRIMARY KEY,
                    text_target TEXT NOT NULL,
                    text_native TEXT,
                    words TEXT,
                    audio TEXT,
                    created_at INTEGER
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    data TEXT NOT NULL
                )
            """)

            # Global caches, unique per normalized word
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS global_word_audio (
                    word TEXT PRIMARY KEY,
                    audio_url TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS global_word_images (
                    word TEXT PRIMARY KEY,
                    image_url TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # Indexes for common queries
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_cards_review ON flashcards(next_review_date)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_cards_created ON flashcards(created_at)")

            # Record schema version
            cursor.execute("INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                           (self.SCHEMA_VERSION, datetime.now().isoformat()))

            conn.commit()

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking call in the thread pool, mapping sqlite errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, fn, *args)
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error: {e}") from e

    def _execute(self, sql: str, params: tuple = ()) -> None:
        with self._get_connection() as conn:
            conn.execute(sql, params)
            conn.commit()

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._get_connection() as conn:
            return conn.execute(sql, params).fetchall()

    # ==================== Row mapping helpers ====================

    def _card_to_row(self, card: Flashcard) -> tuple:
        data = card.to_dict()
        for column in self.JSON_COLUMNS:
            data[column] = json.dumps(data[column], ensure_ascii=False) if data[column] is not None else None
        return tuple(data[c] for c in self.FLASHCARD_COLUMNS)

    def _row_to_card(self, row: sqlite3.Row) -> Flashcard:
        data = dict(row)
        for column in self.JSON_COLUMNS:
            data[column] = json.loads(data[column]) if data[column] else None
        return Flashcard.from_dict(data)

    # ==================== Folders ====================

    async def list_folders(self) -> List[Folder]:
        rows = await self._run(self._query, "SELECT * FROM folders ORDER BY created_at")
        return [Folder.from_dict(dict(r)) for r in rows]

    async def insert_folder(self, folder: Folder) -> None:
        await self._run(
            self._execute,
            "INSERT INTO folders (id, name, created_at) VALUES (?, ?, ?)",
            (folder.id, folder.name, folder.created_at),
        )

    async def delete_folder(self, folder_id: str) -> None:
        await self._run(self._execute, "DELETE FROM folders WHERE id = ?", (folder_id,))

    # ==================== Flashcards ====================

    async def list_flashcards(self) -> List[Flashcard]:
        rows = await self._run(self._query, "SELECT * FROM flashcards ORDER BY created_at")
        return [self._row_to_card(r) for r in rows]

    def _insert_cards(self, cards: List[Flashcard]) -> None:
        placeholders = ", ".join("?" for _ in self.FLASHCARD_COLUMNS)
        column_names = ", ".join(self.FLASHCARD_COLUMNS)
        with self._get_connection() as conn:
            conn.executemany(
                f"INSERT INTO flashcards ({column_names}) VALUES ({placeholders})",
                [self._card_to_row(c) for c in cards],
            )
            conn.commit()

    async def insert_flashcards(self, cards: List[Flashcard]) -> None:
        if cards:
            await self._run(self._insert_cards, cards)

    async def update_flashcard_srs(self, card: Flashcard) -> None:
        await self._run(
            self._execute,
            "UPDATE flashcards SET difficulty = ?, interval = ?, ease_factor = ?, next_review_date = ? WHERE id = ?",
            (card.difficulty.value, card.interval, card.ease_factor, card.next_review_date, card.id),
        )

    async def update_flashcard_folders(self, card_id: str, folder_ids: List[str]) -> None:
        await self._run(
            self._execute,
            "UPDATE flashcards SET folder_ids = ? WHERE id = ?",
            (json.dumps(folder_ids), card_id),
        )

    async def update_flashcard_audio(self, card_id: str, audio: str) -> None:
        await self._run(self._execute, "UPDATE flashcards SET audio_base64 = ? WHERE id = ?", (audio, card_id))

    async def update_flashcard_examples(self, card: Flashcard) -> None:
        examples = json.dumps([e.to_dict() for e in card.examples], ensure_ascii=False)
        await self._run(self._execute, "UPDATE flashcards SET examples = ? WHERE id = ?", (examples, card.id))

    def _delete_cards(self, card_ids: List[str]) -> None:
        with self._get_connection() as conn:
            conn.executemany("DELETE FROM flashcards WHERE id = ?", [(cid,) for cid in card_ids])
            conn.commit()

    async def delete_flashcards(self, card_ids: List[str]) -> None:
        if card_ids:
            await self._run(self._delete_cards, card_ids)

    # ==================== Stories and profile ====================

    async def insert_story(self, story: Story) -> None:
        await self._run(
            self._execute,
            "INSERT INTO stories (id, text_target, text_native, words, audio, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (story.id, story.text_target, story.text_native,
             json.dumps(story.words, ensure_ascii=False), story.audio, story.created_at),
        )

    async def list_stories(self) -> List[Story]:
        rows = await self._run(self._query, "SELECT * FROM stories ORDER BY created_at DESC")
        stories = []
        for row in rows:
            data = dict(row)
            data["words"] = json.loads(data["words"]) if data["words"] else []
            stories.append(Story.from_dict(data))
        return stories

    async def load_profile(self) -> Optional[UserProfile]:
        rows = await self._run(self._query, "SELECT data FROM profiles WHERE id = 1")
        if not rows:
            return None
        return UserProfile.from_dict(json.loads(rows[0]["data"]))

    async def save_profile(self, profile: UserProfile) -> None:
        await self._run(
            self._execute,
            "INSERT OR REPLACE INTO profiles (id, data) VALUES (1, ?)",
            (json.dumps(profile.to_dict(), ensure_ascii=False),),
        )

    # ==================== Media storage ====================

    async def upload_media(self, bucket: str, filename: str, payload: str) -> str:
        """
        Store an inline payload as a file.

        Uses atomic write pattern: write to temp file, then rename.

        Args:
            bucket: Sub-directory (e.g. "global-audio")
            filename: Target filename
            payload: Base64 content, optionally with a data: URI prefix

        Returns:
            file:// URL of the stored file
        """
        try:
            content = base64.b64decode(TextParser.strip_data_uri(payload), validate=True)
        except (binascii.Error, ValueError) as e:
            raise PersistenceError(f"Payload for {filename} is not valid base64") from e

        output_path = self.media_dir / bucket / filename
        temp_path = f"{output_path}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(content)
            # Atomic rename (overwrites existing)
            os.replace(temp_path, output_path)
        except OSError as e:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise PersistenceError(f"Failed to store {filename}: {e}") from e

        return output_path.resolve().as_uri()

    # ==================== Global media cache ====================

    def _find_global(self, table: str, column: str, key: str) -> Optional[str]:
        rows = self._query(f"SELECT {column} FROM {table} WHERE word = ?", (key,))
        return rows[0][column] if rows else None

    def _register_global(self, table: str, column: str, key: str, url: str) -> str:
        with self._get_connection() as conn:
            conn.execute(f"INSERT OR IGNORE INTO {table} (word, {column}) VALUES (?, ?)", (key, url))
            conn.commit()
            row = conn.execute(f"SELECT {column} FROM {table} WHERE word = ?", (key,)).fetchone()
        return row[column]

    async def _save_global(self, table: str, column: str, bucket: str, ext: str, text: str, payload: str) -> str:
        key = TextParser.normalize_key(text)
        filename = f"{TextParser.safe_filename(key)}_{now_ms()}.{ext}"
        url = await self.upload_media(bucket, filename, payload)
        canonical = await self._run(self._register_global, table, column, key, url)
        if canonical != url:
            logger.debug(f"Global {bucket} for {key!r} already existed, keeping canonical entry")
        return canonical

    async def find_global_audio(self, text: str) -> Optional[str]:
        return await self._run(self._find_global, "global_word_audio", "audio_url", TextParser.normalize_key(text))

    async def save_global_audio(self, text: str, payload: str) -> str:
        return await self._save_global("global_word_audio", "audio_url", "global-audio", "mp3", text, payload)

    async def find_global_image(self, word: str) -> Optional[str]:
        return await self._run(self._find_global, "global_word_images", "image_url", TextParser.normalize_key(word))

    async def save_global_image(self, word: str, payload: str) -> str:
        return await self._save_global("global_word_images", "image_url", "global-images", "png", word, payload)

    # ==================== CSV import/export ====================

    def _export_cards(self, csv_path: str) -> int:
        with self._get_connection() as conn:
            df = pd.read_sql_query(
                "SELECT original_term, translation, definition, frequency, interval, "
                "next_review_date, created_at FROM flashcards ORDER BY created_at",
                conn,
            )
        df.to_csv(csv_path, sep='|', index=False, encoding='utf-8-sig')
        return len(df)

    async def export_cards_csv(self, csv_path: str) -> int:
        """
        Export cards to a pipe-separated CSV file.

        Returns:
            Number of exported cards
        """
        try:
            return await self._run(self._export_cards, csv_path)
        except OSError as e:
            raise PersistenceError(f"Export failed: {e}") from e

    @staticmethod
    def import_vocabulary_csv(csv_path: str) -> List[VocabularyItem]:
        """
        Read a word|translation|context CSV into vocabulary items.

        Rows without a word or translation are skipped.

        Args:
            csv_path: Path to CSV file

        Returns:
            List of VocabularyItem ready for card generation
        """
        try:
            df = pd.read_csv(csv_path, sep='|', encoding='utf-8-sig', dtype=str, keep_default_na=False)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise PersistenceError(f"Cannot read {csv_path}: {e}") from e

        df.columns = df.columns.str.strip().str.lower()
        if "context" not in df.columns:
            df["context"] = ""

        items = [
            VocabularyItem(
                word=TextParser.normalize_unicode(row["word"]).strip(),
                translation=TextParser.normalize_unicode(row["translation"]).strip(),
                context=TextParser.normalize_unicode(row["context"]).strip(),
            )
            for row in df.to_dict("records")
            if "word" in row and "translation" in row
        ]
        return [item for item in items if item.is_valid]
