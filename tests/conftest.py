"""Shared pytest fixtures for the tagroll test suite."""

import pytest


SCENE_ID = "scene-1"
NARRATOR = "narrator"


class FixedDice:
    """Die roller that returns queued faces, then a constant."""

    def __init__(self, default: int = 3):
        self.default = default
        self.faces: list[int] = []

    def queue(self, *faces: int):
        self.faces.extend(faces)

    def __call__(self) -> int:
        return self.faces.pop(0) if self.faces else self.default


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_tagroll.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths pointing to tmp_path."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "tagroll.db",
        log_dir=tmp_path / "logs",
        roll_editor_ids=[NARRATOR],
    )


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_fellowship(db):
    """Insert and return a fellowship with one tag and one weakness."""
    fellowship_id = db.upsert_fellowship("The Wardens", ["Shared Oath"], ["Old Grudges"])
    return db.get_fellowship(fellowship_id)


@pytest.fixture
def sample_character(db, sample_fellowship):
    """Insert and return a fully loaded character owned by player1."""
    from models.character import BackpackItem, Character, StoryTag, TempStatus, Theme, ThemeTag
    character = Character(
        owner_id="player1",
        name="Aria",
        is_active=True,
        fellowship_id=sample_fellowship.id,
        themes=[
            Theme(
                name="Swordmaster",
                tags=[ThemeTag(tag="Brave"), ThemeTag(tag="Quick Blade")],
                weaknesses=[
                    ThemeTag(tag="Clumsy", is_weakness=True),
                    ThemeTag(tag="reckless-2", is_weakness=True),
                ],
            ),
            Theme(
                name="Wanderer",
                tags=[ThemeTag(tag="Well-Travelled")],
                weaknesses=[ThemeTag(tag="Homesick", is_weakness=True)],
            ),
        ],
        backpack=[BackpackItem(item="Rope")],
        story_tags=[StoryTag(tag="Owes the Baron")],
        statuses=[
            TempStatus(status="focused", power_levels=[False, False, True, False, False, False]),
            TempStatus(status="rested", power_levels=[True, False, False, True, False, False]),
        ],
    )
    character_id = db.create_character(character)
    return db.get_character(character_id)


@pytest.fixture
def helper_character(db):
    """Insert and return a second character owned by player2."""
    from models.character import Character, Theme, ThemeTag
    character = Character(
        owner_id="player2",
        name="Bram",
        themes=[
            Theme(
                name="Blacksmith",
                tags=[ThemeTag(tag="Strong Arms")],
                weaknesses=[ThemeTag(tag="Slow", is_weakness=True)],
            ),
        ],
    )
    return db.get_character(db.create_character(character))


@pytest.fixture
def scene_id(db):
    """A scene with one plain tag, one status, one limit."""
    from models.enums import SceneEntryType
    db.add_scene_entries(SCENE_ID, ["Dark Alley"], SceneEntryType.TAG)
    db.add_scene_entries(SCENE_ID, ["bold-2"], SceneEntryType.STATUS)
    db.add_scene_entries(SCENE_ID, ["Guards-3"], SceneEntryType.LIMIT)
    return SCENE_ID


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def dice():
    return FixedDice()


@pytest.fixture
def resolver(db):
    from engine.resolver import TagResolver
    return TagResolver(db)


@pytest.fixture
def manager(db, settings, dice):
    """Lifecycle manager with 'narrator' as the only editor and queued dice."""
    from engine.lifecycle import RollLifecycleManager
    return RollLifecycleManager(db, settings, dice_roller=dice)


@pytest.fixture
def pick(manager):
    """Return pool references for a session side by display name."""
    def _pick(key, side, *names):
        by_name = {}
        for ref in manager.get_pool(key, side):
            by_name.setdefault(manager.resolver.resolve(ref).display_name, ref)
        return [by_name[name] for name in names]
    return _pick


@pytest.fixture
def sheet_ref(db, resolver):
    """Return a reference to a named entry on a character's sheet."""
    from engine.pool import TagPoolCollector

    def _sheet_ref(character, name, scene=SCENE_ID):
        collector = TagPoolCollector(db)
        for ref in collector.collect_pool(
            db.get_character(character.id), scene, include_burned=True, include_weaknesses=True
        ):
            if resolver.resolve(ref).display_name == name:
                return ref
        raise LookupError(name)
    return _sheet_ref


@pytest.fixture
def confirmed_roll(manager, sample_character, scene_id, pick):
    """Factory driving a roll from draft to confirmed."""
    from engine.drafts import SessionKey
    from models.enums import RollSide

    def _make(help=(), hinder=(), burn=None, might=0, reaction_to=None, actor="player1"):
        manager.start_draft(
            actor, sample_character.id, scene_id,
            description="Leap across the rooftops",
            reaction_to_roll_id=reaction_to,
            might_modifier=might,
        )
        key = SessionKey.draft(actor, scene_id)
        if help:
            manager.update_selection(actor, key, RollSide.HELP, 0, pick(key, RollSide.HELP, *help))
        if hinder:
            manager.update_selection(actor, key, RollSide.HINDER, 0, pick(key, RollSide.HINDER, *hinder))
        if burn:
            manager.toggle_burn(actor, key, pick(key, RollSide.HELP, burn)[0])
        roll = manager.submit(actor, key)
        manager.open_review(NARRATOR, roll.id)
        return manager.confirm_edits(NARRATOR, SessionKey.review(roll.id))
    return _make
