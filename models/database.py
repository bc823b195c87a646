"""SQLite database initialization and CRUD operations."""

import logging
import shutil
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

from config.exceptions import InvariantViolationError, StorageFailureError, ValidationError
from models.character import (
    POWER_LEVELS,
    BackpackItem,
    Character,
    Fellowship,
    FellowshipTag,
    SceneEntry,
    StoryTag,
    TempStatus,
    Theme,
    ThemeTag,
)
from models.enums import RollStatus, SceneEntryType, TagParentKind

logger = logging.getLogger(__name__)

MAX_THEMES = 4
MAX_WEAKNESSES_PER_THEME = 2

_POWER_COLUMNS = ", ".join(f"power_{p}" for p in range(1, POWER_LEVELS + 1))

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS fellowships (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS fellowship_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fellowship_id INTEGER NOT NULL REFERENCES fellowships(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    is_weakness BOOLEAN DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS characters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT,
    name TEXT NOT NULL,
    is_active BOOLEAN DEFAULT FALSE,
    fellowship_id INTEGER REFERENCES fellowships(id) ON DELETE SET NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS character_themes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    theme_order INTEGER NOT NULL,
    is_burned BOOLEAN DEFAULT FALSE,
    improvements INTEGER NOT NULL DEFAULT 0 CHECK(improvements >= 0)
);

CREATE TABLE IF NOT EXISTS character_theme_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    theme_id INTEGER NOT NULL REFERENCES character_themes(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    is_weakness BOOLEAN DEFAULT FALSE,
    is_burned BOOLEAN DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS character_backpack (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
    item TEXT NOT NULL,
    is_burned BOOLEAN DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS character_story_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    is_burned BOOLEAN DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS character_statuses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    character_id INTEGER NOT NULL REFERENCES characters(id) ON DELETE CASCADE,
    status TEXT NOT NULL,
    power_1 BOOLEAN DEFAULT FALSE,
    power_2 BOOLEAN DEFAULT FALSE,
    power_3 BOOLEAN DEFAULT FALSE,
    power_4 BOOLEAN DEFAULT FALSE,
    power_5 BOOLEAN DEFAULT FALSE,
    power_6 BOOLEAN DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS scenes (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS scene_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scene_id TEXT NOT NULL REFERENCES scenes(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    tag_type TEXT NOT NULL CHECK(tag_type IN ('tag', 'status', 'limit', 'blocked'))
);

CREATE TABLE IF NOT EXISTS rolls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    creator_id TEXT NOT NULL,
    character_id INTEGER REFERENCES characters(id) ON DELETE SET NULL,
    scene_id TEXT NOT NULL,
    description TEXT,
    narration_link TEXT,
    justification_notes TEXT,
    status TEXT NOT NULL DEFAULT 'submitted'
        CHECK(status IN ('submitted', 'confirmed', 'executed')),
    confirmed_by TEXT,
    is_reaction BOOLEAN DEFAULT FALSE,
    reaction_to_roll_id INTEGER REFERENCES rolls(id) ON DELETE SET NULL,
    might_modifier INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS roll_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    roll_id INTEGER NOT NULL REFERENCES rolls(id) ON DELETE CASCADE,
    side TEXT NOT NULL CHECK(side IN ('help', 'hinder')),
    is_burned BOOLEAN DEFAULT FALSE,
    source_owner_id INTEGER REFERENCES characters(id) ON DELETE SET NULL,
    parent_kind TEXT NOT NULL CHECK(parent_kind IN (
        'character_theme',
        'character_theme_tag',
        'character_backpack',
        'character_story_tag',
        'character_status',
        'scene_tag',
        'fellowship_tag'
    )),
    parent_id INTEGER NOT NULL
);
"""

# Indexes added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_characters_owner ON characters(owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_characters_active ON characters(owner_id, is_active)",
    "CREATE INDEX IF NOT EXISTS idx_characters_fellowship ON characters(fellowship_id)",
    "CREATE INDEX IF NOT EXISTS idx_themes_character ON character_themes(character_id)",
    "CREATE INDEX IF NOT EXISTS idx_theme_tags_theme ON character_theme_tags(theme_id)",
    "CREATE INDEX IF NOT EXISTS idx_backpack_character ON character_backpack(character_id)",
    "CREATE INDEX IF NOT EXISTS idx_story_tags_character ON character_story_tags(character_id)",
    "CREATE INDEX IF NOT EXISTS idx_statuses_character ON character_statuses(character_id)",
    "CREATE INDEX IF NOT EXISTS idx_fellowship_tags_fellowship ON fellowship_tags(fellowship_id)",
    "CREATE INDEX IF NOT EXISTS idx_scene_tags_type ON scene_tags(scene_id, tag_type)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_scene_tags_unique ON scene_tags(scene_id, tag, tag_type)",
    "CREATE INDEX IF NOT EXISTS idx_rolls_scene ON rolls(scene_id)",
    "CREATE INDEX IF NOT EXISTS idx_rolls_status ON rolls(status)",
    "CREATE INDEX IF NOT EXISTS idx_roll_tags_roll ON roll_tags(roll_id)",
    "CREATE INDEX IF NOT EXISTS idx_roll_tags_parent ON roll_tags(parent_kind, parent_id)",
]

# Tables carrying a persistent burn flag, keyed by the reference kind that points at them
_BURNABLE_TABLES = {
    TagParentKind.CHARACTER_THEME: "character_themes",
    TagParentKind.CHARACTER_THEME_TAG: "character_theme_tags",
    TagParentKind.CHARACTER_BACKPACK: "character_backpack",
    TagParentKind.CHARACTER_STORY_TAG: "character_story_tags",
}

_ROLL_COLUMNS = (
    "creator_id", "character_id", "scene_id", "description", "narration_link",
    "justification_notes", "status", "confirmed_by", "is_reaction",
    "reaction_to_roll_id", "might_modifier",
)

# (side, is_burned, source_owner_id, parent_kind, parent_id)
TagRow = tuple[str, bool, Optional[int], str, int]


class Database:
    """SQLite database manager for character sheets, scenes and rolls."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in a single transaction; any sqlite error rolls it all back."""
        conn = self._get_conn()
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Storage transaction failed: %s", e)
            raise StorageFailureError("Storage transaction failed", {"error": str(e)}) from e
        finally:
            conn.close()

    def _init_db(self):
        with self._transaction() as conn:
            conn.executescript(_CREATE_TABLES_SQL)
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes, constraints)."""
        conn = self._get_conn()
        try:
            with conn:
                for sql in _MIGRATION_SQL:
                    try:
                        conn.execute(sql)
                    except sqlite3.OperationalError as e:
                        logger.debug("Migration skipped (already applied): %s", e)
        finally:
            conn.close()

    def backup_database(self, target_path: str | Path) -> Path:
        """Create a backup copy of the database.

        Args:
            target_path: Path for the backup file.

        Returns:
            Path to the backup file.
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(str(self.db_path), str(target))
        logger.info("Database backed up to %s", target)
        return target

    # ---- Character CRUD ----

    def create_character(self, character: Character) -> int:
        """Insert a character with its whole sheet in one transaction."""
        if len(character.themes) > MAX_THEMES:
            raise ValidationError(
                f"A character has at most {MAX_THEMES} themes",
                {"themes": len(character.themes)},
            )
        for theme in character.themes:
            if len(theme.weaknesses) > MAX_WEAKNESSES_PER_THEME:
                raise ValidationError(
                    f"Theme '{theme.name}' has more than {MAX_WEAKNESSES_PER_THEME} weaknesses",
                    {"theme": theme.name, "weaknesses": len(theme.weaknesses)},
                )

        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO characters (owner_id, name, is_active, fellowship_id) "
                "VALUES (?, ?, ?, ?)",
                (character.owner_id, character.name.strip(), character.is_active,
                 character.fellowship_id),
            )
            character_id = cursor.lastrowid

            for order, theme in enumerate(character.themes):
                theme_cursor = conn.execute(
                    "INSERT INTO character_themes (character_id, name, theme_order, "
                    "is_burned, improvements) VALUES (?, ?, ?, ?, ?)",
                    (character_id, theme.name, order, theme.is_burned, theme.improvements),
                )
                theme_id = theme_cursor.lastrowid
                for tag in theme.tags:
                    conn.execute(
                        "INSERT INTO character_theme_tags (theme_id, tag, is_weakness, is_burned) "
                        "VALUES (?, ?, FALSE, ?)",
                        (theme_id, tag.tag, tag.is_burned),
                    )
                for weakness in theme.weaknesses:
                    conn.execute(
                        "INSERT INTO character_theme_tags (theme_id, tag, is_weakness, is_burned) "
                        "VALUES (?, ?, TRUE, FALSE)",
                        (theme_id, weakness.tag),
                    )

            for item in character.backpack:
                conn.execute(
                    "INSERT INTO character_backpack (character_id, item, is_burned) VALUES (?, ?, ?)",
                    (character_id, item.item, item.is_burned),
                )
            for story_tag in character.story_tags:
                conn.execute(
                    "INSERT INTO character_story_tags (character_id, tag, is_burned) VALUES (?, ?, ?)",
                    (character_id, story_tag.tag, story_tag.is_burned),
                )
            for status in character.statuses:
                self._insert_status(conn, character_id, status.status, status.power_levels)

        logger.info("Character %d (%s) created", character_id, character.name)
        return character_id

    def get_character(self, character_id: int) -> Optional[Character]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM characters WHERE id = ?", (character_id,)).fetchone()
            if not row:
                return None
            return self._load_character(conn, row)

    def list_characters(self, owner_id: Optional[str] = None) -> list[Character]:
        """List characters, optionally only those owned by one actor."""
        with self._transaction() as conn:
            if owner_id is not None:
                rows = conn.execute(
                    "SELECT * FROM characters WHERE owner_id = ? ORDER BY name, id",
                    (owner_id,),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM characters ORDER BY name, id").fetchall()
            return [self._load_character(conn, r) for r in rows]

    def get_active_character(self, owner_id: str) -> Optional[Character]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM characters WHERE owner_id = ? AND is_active = TRUE "
                "ORDER BY id LIMIT 1",
                (owner_id,),
            ).fetchone()
            if not row:
                return None
            return self._load_character(conn, row)

    def set_active_character(self, owner_id: str, character_id: int) -> bool:
        """Make one of the owner's characters active; False if the owner has no such character."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id FROM characters WHERE id = ? AND owner_id = ?",
                (character_id, owner_id),
            ).fetchone()
            if not row:
                return False
            conn.execute("UPDATE characters SET is_active = FALSE WHERE owner_id = ?", (owner_id,))
            conn.execute(
                "UPDATE characters SET is_active = TRUE, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (character_id,),
            )
            return True

    def set_character_fellowship(self, character_id: int, fellowship_id: Optional[int]):
        with self._transaction() as conn:
            conn.execute(
                "UPDATE characters SET fellowship_id = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (fellowship_id, character_id),
            )

    def delete_character(self, character_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM characters WHERE id = ?", (character_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Character %d and its sheet deleted", character_id)
        return deleted

    def add_backpack_item(self, character_id: int, item: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO character_backpack (character_id, item) VALUES (?, ?)",
                (character_id, item.strip()),
            )
            return cursor.lastrowid

    def add_story_tag(self, character_id: int, tag: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO character_story_tags (character_id, tag) VALUES (?, ?)",
                (character_id, tag.strip()),
            )
            return cursor.lastrowid

    def add_status(self, character_id: int, status: str, power_levels: Iterable[bool] = ()) -> int:
        with self._transaction() as conn:
            return self._insert_status(conn, character_id, status, power_levels)

    def set_status_powers(self, status_id: int, power_levels: Iterable[bool]):
        levels = self._normalize_powers(power_levels)
        assignments = ", ".join(f"power_{p} = ?" for p in range(1, POWER_LEVELS + 1))
        with self._transaction() as conn:
            conn.execute(
                f"UPDATE character_statuses SET {assignments} WHERE id = ?",
                (*levels, status_id),
            )

    def remove_status(self, status_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM character_statuses WHERE id = ?", (status_id,))
            return cursor.rowcount > 0

    def _insert_status(self, conn: sqlite3.Connection, character_id: int, status: str,
                       power_levels: Iterable[bool]) -> int:
        levels = self._normalize_powers(power_levels)
        placeholders = ", ".join("?" for _ in range(POWER_LEVELS))
        cursor = conn.execute(
            f"INSERT INTO character_statuses (character_id, status, {_POWER_COLUMNS}) "
            f"VALUES (?, ?, {placeholders})",
            (character_id, status.strip(), *levels),
        )
        return cursor.lastrowid

    @staticmethod
    def _normalize_powers(power_levels: Iterable[bool]) -> list[bool]:
        levels = [bool(v) for v in power_levels][:POWER_LEVELS]
        return levels + [False] * (POWER_LEVELS - len(levels))

    def _load_character(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Character:
        character_id = row["id"]
        themes = []
        theme_rows = conn.execute(
            "SELECT * FROM character_themes WHERE character_id = ? ORDER BY theme_order, id",
            (character_id,),
        ).fetchall()
        for t in theme_rows:
            theme = self._row_to_theme(t)
            tag_rows = conn.execute(
                "SELECT * FROM character_theme_tags WHERE theme_id = ? ORDER BY id",
                (t["id"],),
            ).fetchall()
            for tr in tag_rows:
                tag = self._row_to_theme_tag(tr)
                if tag.is_weakness:
                    theme.weaknesses.append(tag)
                else:
                    theme.tags.append(tag)
            themes.append(theme)

        backpack = [
            self._row_to_backpack(r)
            for r in conn.execute(
                "SELECT * FROM character_backpack WHERE character_id = ? ORDER BY id",
                (character_id,),
            ).fetchall()
        ]
        story_tags = [
            self._row_to_story_tag(r)
            for r in conn.execute(
                "SELECT * FROM character_story_tags WHERE character_id = ? ORDER BY id",
                (character_id,),
            ).fetchall()
        ]
        statuses = [
            self._row_to_status(r)
            for r in conn.execute(
                "SELECT * FROM character_statuses WHERE character_id = ? ORDER BY id",
                (character_id,),
            ).fetchall()
        ]

        fellowship = None
        if row["fellowship_id"] is not None:
            fellowship = self._load_fellowship(conn, row["fellowship_id"])

        return Character(
            id=character_id, owner_id=row["owner_id"], name=row["name"],
            is_active=bool(row["is_active"]), fellowship_id=row["fellowship_id"],
            themes=themes, backpack=backpack, story_tags=story_tags,
            statuses=statuses, fellowship=fellowship,
            created_at=row["created_at"], updated_at=row["updated_at"],
        )

    # ---- Single-record lookups (used by the tag resolver) ----

    def get_theme(self, theme_id: int) -> Optional[Theme]:
        """Fetch a theme row without its tags."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM character_themes WHERE id = ?", (theme_id,)).fetchone()
            return self._row_to_theme(row) if row else None

    def get_theme_tag(self, tag_id: int) -> Optional[ThemeTag]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM character_theme_tags WHERE id = ?", (tag_id,)).fetchone()
            return self._row_to_theme_tag(row) if row else None

    def get_backpack_item(self, item_id: int) -> Optional[BackpackItem]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM character_backpack WHERE id = ?", (item_id,)).fetchone()
            return self._row_to_backpack(row) if row else None

    def get_story_tag(self, tag_id: int) -> Optional[StoryTag]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM character_story_tags WHERE id = ?", (tag_id,)).fetchone()
            return self._row_to_story_tag(row) if row else None

    def get_status(self, status_id: int) -> Optional[TempStatus]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM character_statuses WHERE id = ?", (status_id,)).fetchone()
            return self._row_to_status(row) if row else None

    def get_scene_entry(self, entry_id: int) -> Optional[SceneEntry]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM scene_tags WHERE id = ?", (entry_id,)).fetchone()
            return self._row_to_scene_entry(row) if row else None

    def get_fellowship_tag(self, tag_id: int) -> Optional[FellowshipTag]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM fellowship_tags WHERE id = ?", (tag_id,)).fetchone()
            return self._row_to_fellowship_tag(row) if row else None

    def _row_to_theme(self, row) -> Theme:
        return Theme(
            id=row["id"], character_id=row["character_id"], name=row["name"],
            theme_order=row["theme_order"], is_burned=bool(row["is_burned"]),
            improvements=row["improvements"],
        )

    def _row_to_theme_tag(self, row) -> ThemeTag:
        return ThemeTag(
            id=row["id"], theme_id=row["theme_id"], tag=row["tag"],
            is_weakness=bool(row["is_weakness"]), is_burned=bool(row["is_burned"]),
        )

    def _row_to_backpack(self, row) -> BackpackItem:
        return BackpackItem(
            id=row["id"], character_id=row["character_id"], item=row["item"],
            is_burned=bool(row["is_burned"]),
        )

    def _row_to_story_tag(self, row) -> StoryTag:
        return StoryTag(
            id=row["id"], character_id=row["character_id"], tag=row["tag"],
            is_burned=bool(row["is_burned"]),
        )

    def _row_to_status(self, row) -> TempStatus:
        return TempStatus(
            id=row["id"], character_id=row["character_id"], status=row["status"],
            power_levels=[bool(row[f"power_{p}"]) for p in range(1, POWER_LEVELS + 1)],
        )

    def _row_to_scene_entry(self, row) -> SceneEntry:
        return SceneEntry(
            id=row["id"], scene_id=row["scene_id"], tag=row["tag"],
            entry_type=SceneEntryType(row["tag_type"]),
        )

    def _row_to_fellowship_tag(self, row) -> FellowshipTag:
        return FellowshipTag(
            id=row["id"], fellowship_id=row["fellowship_id"], tag=row["tag"],
            is_weakness=bool(row["is_weakness"]),
        )

    # ---- Scene CRUD ----

    def add_scene_entries(self, scene_id: str, names: Iterable[str],
                          entry_type: SceneEntryType = SceneEntryType.TAG) -> list[int]:
        """Add entries to a scene, skipping case-insensitive duplicates.

        Returns the ids of the matching rows, new or pre-existing, in input order.
        """
        ids = []
        with self._transaction() as conn:
            conn.execute("INSERT OR IGNORE INTO scenes (id) VALUES (?)", (scene_id,))
            for name in names:
                name = name.strip()
                if not name:
                    continue
                existing = conn.execute(
                    "SELECT id FROM scene_tags WHERE scene_id = ? AND tag_type = ? "
                    "AND LOWER(tag) = LOWER(?)",
                    (scene_id, entry_type.value, name),
                ).fetchone()
                if existing:
                    ids.append(existing["id"])
                    continue
                cursor = conn.execute(
                    "INSERT INTO scene_tags (scene_id, tag, tag_type) VALUES (?, ?, ?)",
                    (scene_id, name, entry_type.value),
                )
                ids.append(cursor.lastrowid)
        return ids

    def list_scene_entries(self, scene_id: str,
                           entry_type: Optional[SceneEntryType] = None) -> list[SceneEntry]:
        with self._transaction() as conn:
            if entry_type:
                rows = conn.execute(
                    "SELECT * FROM scene_tags WHERE scene_id = ? AND tag_type = ? ORDER BY id",
                    (scene_id, entry_type.value),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM scene_tags WHERE scene_id = ? ORDER BY id",
                    (scene_id,),
                ).fetchall()
            return [self._row_to_scene_entry(r) for r in rows]

    def remove_scene_entry(self, entry_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM scene_tags WHERE id = ?", (entry_id,))
            return cursor.rowcount > 0

    def clear_scene(self, scene_id: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM scene_tags WHERE scene_id = ?", (scene_id,))
            return cursor.rowcount

    # ---- Fellowship CRUD ----

    def upsert_fellowship(self, name: str, tags: Iterable[str] = (),
                          weaknesses: Iterable[str] = ()) -> int:
        """Create a fellowship or replace the tags of an existing one with that name."""
        with self._transaction() as conn:
            row = conn.execute("SELECT id FROM fellowships WHERE name = ?", (name,)).fetchone()
            if row:
                fellowship_id = row["id"]
                conn.execute("DELETE FROM fellowship_tags WHERE fellowship_id = ?", (fellowship_id,))
                conn.execute(
                    "UPDATE fellowships SET updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (fellowship_id,),
                )
            else:
                fellowship_id = conn.execute(
                    "INSERT INTO fellowships (name) VALUES (?)", (name,)
                ).lastrowid
            for tag in tags:
                conn.execute(
                    "INSERT INTO fellowship_tags (fellowship_id, tag, is_weakness) VALUES (?, ?, FALSE)",
                    (fellowship_id, tag),
                )
            for weakness in weaknesses:
                conn.execute(
                    "INSERT INTO fellowship_tags (fellowship_id, tag, is_weakness) VALUES (?, ?, TRUE)",
                    (fellowship_id, weakness),
                )
        return fellowship_id

    def get_fellowship(self, fellowship_id: int) -> Optional[Fellowship]:
        with self._transaction() as conn:
            return self._load_fellowship(conn, fellowship_id)

    def _load_fellowship(self, conn: sqlite3.Connection, fellowship_id: int) -> Optional[Fellowship]:
        row = conn.execute("SELECT * FROM fellowships WHERE id = ?", (fellowship_id,)).fetchone()
        if not row:
            return None
        fellowship = Fellowship(id=row["id"], name=row["name"])
        for r in conn.execute(
            "SELECT * FROM fellowship_tags WHERE fellowship_id = ? ORDER BY id",
            (fellowship_id,),
        ).fetchall():
            tag = self._row_to_fellowship_tag(r)
            if tag.is_weakness:
                fellowship.weaknesses.append(tag)
            else:
                fellowship.tags.append(tag)
        return fellowship

    # ---- Persistent burn flags & improvements ----

    def set_burn_flags(self, targets: Iterable[tuple[TagParentKind, int]], burned: bool) -> int:
        """Set or clear the persistent burn flag on several records atomically.

        Returns the number of rows changed.
        """
        targets = list(targets)
        for kind, _ in targets:
            if kind not in _BURNABLE_TABLES:
                raise InvariantViolationError(
                    f"Tags of kind '{kind.value}' carry no persistent burn flag",
                    {"parent_kind": kind.value},
                )
        changed = 0
        with self._transaction() as conn:
            for kind, parent_id in targets:
                table = _BURNABLE_TABLES[kind]
                cursor = conn.execute(
                    f"UPDATE {table} SET is_burned = ? WHERE id = ?",
                    (burned, parent_id),
                )
                changed += cursor.rowcount
        return changed

    def increment_theme_improvements(self, theme_ids: Iterable[int]) -> dict[int, int]:
        """Add one improvement per occurrence of a theme id; returns new counts."""
        with self._transaction() as conn:
            return self._increment_themes(conn, theme_ids)

    def set_theme_improvements(self, theme_id: int, count: int) -> bool:
        if count < 0:
            raise ValidationError("Improvement count must be non-negative", {"count": count})
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE character_themes SET improvements = ? WHERE id = ?",
                (count, theme_id),
            )
            return cursor.rowcount > 0

    def list_themes_ready(self, threshold: int) -> list[Theme]:
        """Themes whose improvement counter has reached the threshold."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM character_themes WHERE improvements >= ? "
                "ORDER BY character_id, theme_order",
                (threshold,),
            ).fetchall()
            return [self._row_to_theme(r) for r in rows]

    def _increment_themes(self, conn: sqlite3.Connection, theme_ids: Iterable[int]) -> dict[int, int]:
        counts = {}
        for theme_id in theme_ids:
            conn.execute(
                "UPDATE character_themes SET improvements = improvements + 1 WHERE id = ?",
                (theme_id,),
            )
            row = conn.execute(
                "SELECT improvements FROM character_themes WHERE id = ?", (theme_id,)
            ).fetchone()
            if row:
                counts[theme_id] = row["improvements"]
        return counts

    # ---- Roll rows ----

    def insert_roll(self, fields: dict, tag_rows: Iterable[TagRow]) -> int:
        """Insert a roll and its tag rows in one transaction."""
        columns = [c for c in _ROLL_COLUMNS if c in fields]
        placeholders = ", ".join("?" for _ in columns)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO rolls ({', '.join(columns)}) VALUES ({placeholders})",
                tuple(fields[c] for c in columns),
            )
            roll_id = cursor.lastrowid
            self._insert_tag_rows(conn, roll_id, tag_rows)
        return roll_id

    def update_roll_row(self, roll_id: int, fields: dict,
                        tag_rows: Optional[Iterable[TagRow]] = None) -> bool:
        """Update roll columns and optionally replace its tag rows, atomically."""
        unknown = set(fields) - set(_ROLL_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown roll columns: {sorted(unknown)}")
        with self._transaction() as conn:
            if not conn.execute("SELECT id FROM rolls WHERE id = ?", (roll_id,)).fetchone():
                return False
            if fields:
                assignments = ", ".join(f"{c} = ?" for c in fields)
                conn.execute(
                    f"UPDATE rolls SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*fields.values(), roll_id),
                )
            if tag_rows is not None:
                conn.execute("DELETE FROM roll_tags WHERE roll_id = ?", (roll_id,))
                self._insert_tag_rows(conn, roll_id, tag_rows)
        return True

    def mark_roll_executed(self, roll_id: int, theme_ids: Iterable[int]) -> dict[int, int]:
        """Flip a roll to executed and apply theme improvements in one transaction."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE rolls SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (RollStatus.EXECUTED.value, roll_id),
            )
            return self._increment_themes(conn, theme_ids)

    def fetch_roll(self, roll_id: int) -> Optional[sqlite3.Row]:
        with self._transaction() as conn:
            return conn.execute("SELECT * FROM rolls WHERE id = ?", (roll_id,)).fetchone()

    def fetch_roll_tags(self, roll_id: int) -> list[sqlite3.Row]:
        with self._transaction() as conn:
            return conn.execute(
                "SELECT * FROM roll_tags WHERE roll_id = ? ORDER BY id", (roll_id,)
            ).fetchall()

    def list_roll_ids(self, scene_id: Optional[str] = None,
                      status: Optional[RollStatus] = None) -> list[int]:
        clauses, params = [], []
        if scene_id is not None:
            clauses.append("scene_id = ?")
            params.append(scene_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT id FROM rolls {where} ORDER BY id DESC", tuple(params)
            ).fetchall()
            return [r["id"] for r in rows]

    def delete_roll(self, roll_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM rolls WHERE id = ?", (roll_id,))
            return cursor.rowcount > 0

    def delete_roll_tag_rows(self, row_ids: Iterable[int]) -> int:
        removed = 0
        with self._transaction() as conn:
            for row_id in row_ids:
                removed += conn.execute("DELETE FROM roll_tags WHERE id = ?", (row_id,)).rowcount
        return removed

    def _insert_tag_rows(self, conn: sqlite3.Connection, roll_id: int, tag_rows: Iterable[TagRow]):
        for side, is_burned, source_owner_id, parent_kind, parent_id in tag_rows:
            conn.execute(
                "INSERT INTO roll_tags (roll_id, side, is_burned, source_owner_id, "
                "parent_kind, parent_id) VALUES (?, ?, ?, ?, ?, ?)",
                (roll_id, side, is_burned, source_owner_id, parent_kind, parent_id),
            )
