"""Tests for the roll proposal lifecycle."""

import pytest

from config.exceptions import (
    CharacterNotFoundError,
    InvalidTransitionError,
    InvariantViolationError,
    PermissionDeniedError,
    RollNotFoundError,
    SessionNotFoundError,
    StorageFailureError,
    TagNotFoundError,
    ValidationError,
)
from config.settings import Settings
from engine.drafts import SessionKey
from engine.lifecycle import RollLifecycleManager
from models.enums import Outcome, PowerStrategy, RollSide, RollStatus

NARRATOR = "narrator"
HELP = RollSide.HELP
HINDER = RollSide.HINDER


@pytest.fixture
def draft_key(manager, sample_character, scene_id):
    manager.start_draft("player1", sample_character.id, scene_id, description="Sneak past the guards")
    return SessionKey.draft("player1", scene_id)


@pytest.fixture
def helper_pick(manager, helper_character, scene_id):
    """References from the helper's own pool by display name."""
    def _pick(side, *names):
        pool = manager.collector.collect_pool(
            manager.db.get_character(helper_character.id), scene_id,
            include_weaknesses=side == HINDER,
        )
        by_name = {manager.resolver.resolve(r).display_name: r for r in pool}
        return [by_name[n] for n in names]
    return _pick


class TestStartDraft:
    def test_returns_draft_snapshot(self, manager, draft_key, sample_character):
        draft = manager.get_session(draft_key)
        assert draft.status == RollStatus.DRAFT
        assert draft.creator_id == "player1"
        assert draft.acting_character_id == sample_character.id
        assert draft.description == "Sneak past the guards"
        assert not draft.is_reaction

    def test_snapshot_is_detached(self, manager, draft_key, pick):
        snapshot = manager.get_session(draft_key)
        snapshot.help_tags.update(pick(draft_key, HELP, "Brave"))
        assert manager.get_session(draft_key).help_tags == set()

    def test_new_draft_replaces_old_one(self, manager, draft_key, sample_character, scene_id):
        manager.start_draft("player1", sample_character.id, scene_id, description="Second idea")
        assert manager.get_session(draft_key).description == "Second idea"
        assert len(manager.store) == 1

    def test_unknown_character(self, manager, scene_id):
        with pytest.raises(CharacterNotFoundError):
            manager.start_draft("player1", 9999, scene_id)

    def test_rolling_for_someone_elses_character_is_denied(self, manager, sample_character, scene_id):
        with pytest.raises(PermissionDeniedError):
            manager.start_draft("player2", sample_character.id, scene_id)

    def test_editor_may_roll_for_any_character(self, manager, sample_character, scene_id):
        draft = manager.start_draft(NARRATOR, sample_character.id, scene_id)
        assert draft.creator_id == NARRATOR

    def test_might_out_of_range(self, manager, sample_character, scene_id):
        with pytest.raises(ValidationError):
            manager.start_draft("player1", sample_character.id, scene_id, might_modifier=13)

    def test_editor_role_from_settings(self, db, settings):
        manager = RollLifecycleManager(db, settings)
        assert manager.has_editor_role(NARRATOR)
        assert not manager.has_editor_role("player1")


class TestSelection:
    def test_select_help_and_hinder(self, manager, draft_key, pick):
        manager.update_selection("player1", draft_key, HELP, 0, pick(draft_key, HELP, "Brave", "focused-3"))
        draft = manager.update_selection(
            "player1", draft_key, HINDER, 0, pick(draft_key, HINDER, "Clumsy")
        )
        assert draft.help_tags == set(pick(draft_key, HELP, "Brave", "focused-3"))
        assert draft.hinder_tags == set(pick(draft_key, HINDER, "Clumsy"))
        assert manager.preview_modifier(draft_key).total == 3

    def test_weaknesses_are_not_offered_for_help(self, manager, draft_key, pick):
        with pytest.raises(KeyError):
            pick(draft_key, HELP, "Clumsy")

    def test_help_hinder_overlap_allowed(self, manager, draft_key, pick):
        brave = pick(draft_key, HELP, "Brave")
        manager.update_selection("player1", draft_key, HELP, 0, brave)
        draft = manager.update_selection("player1", draft_key, HINDER, 0, brave)
        assert draft.help_tags == draft.hinder_tags == set(brave)
        assert manager.preview_modifier(draft_key).total == 0

    def test_page_selection_survives_other_pages(self, db, tmp_path, sample_character, scene_id, dice):
        small = RollLifecycleManager(
            db,
            Settings(_env_file=None, sqlite_db_path=tmp_path / "x.db", log_dir=tmp_path / "logs",
                     pool_page_size=5),
            dice_roller=dice,
        )
        small.start_draft("player1", sample_character.id, scene_id)
        key = SessionKey.draft("player1", scene_id)

        def refs(*names):
            by_name = {small.resolver.resolve(r).display_name: r for r in small.get_pool(key, HELP)}
            return [by_name[n] for n in names]

        assert small.get_page(key, HELP)[1] == 3
        small.update_selection("player1", key, HELP, 0, refs("Swordmaster"))
        draft = small.update_selection("player1", key, HELP, 1, refs("Rope", "Dark Alley"))
        assert draft.help_tags == set(refs("Swordmaster", "Rope", "Dark Alley"))

        draft = small.update_selection("player1", key, HELP, 0, [])
        assert draft.help_tags == set(refs("Rope", "Dark Alley"))
        assert small.get_page(key, HELP)[0] == 0

        with pytest.raises(InvariantViolationError):
            small.update_selection("player1", key, HELP, 1, refs("Swordmaster"))
        assert small.get_session(key).help_tags == set(refs("Rope", "Dark Alley"))

    def test_set_page_bounds(self, manager, draft_key):
        manager.set_page("player1", draft_key, HELP, 0)
        with pytest.raises(InvariantViolationError):
            manager.set_page("player1", draft_key, HELP, 1)

    @pytest.mark.parametrize("page", [-1, 1, 7])
    def test_update_selection_rejects_page_out_of_range(self, manager, draft_key, page):
        with pytest.raises(InvariantViolationError):
            manager.update_selection("player1", draft_key, HELP, page, [])
        assert manager.get_page(draft_key, HELP)[0] == 0

    def test_get_page(self, manager, draft_key):
        page, pages, refs = manager.get_page(draft_key, HINDER)
        assert (page, pages, len(refs)) == (0, 1, 16)

    def test_deselecting_burned_tag_drops_burn(self, manager, draft_key, pick):
        brave = pick(draft_key, HELP, "Brave")
        manager.update_selection("player1", draft_key, HELP, 0, brave)
        manager.toggle_burn("player1", draft_key, brave[0])
        draft = manager.update_selection("player1", draft_key, HELP, 0, [])
        assert draft.burned_tags == set()

    def test_other_player_cannot_edit_draft(self, manager, draft_key, pick):
        with pytest.raises(PermissionDeniedError):
            manager.update_selection("player2", draft_key, HELP, 0, pick(draft_key, HELP, "Brave"))
        assert manager.get_session(draft_key).help_tags == set()

    def test_editor_can_edit_draft(self, manager, draft_key, pick):
        draft = manager.update_selection(NARRATOR, draft_key, HELP, 0, pick(draft_key, HELP, "Brave"))
        assert len(draft.help_tags) == 1

    def test_unknown_session(self, manager, scene_id):
        with pytest.raises(SessionNotFoundError):
            manager.get_session(SessionKey.draft("nobody", scene_id))

    def test_set_might_and_details(self, manager, draft_key):
        manager.set_might("player1", draft_key, -3)
        draft = manager.set_details("player1", draft_key, narration_link="https://example.test/msg/1")
        assert draft.might_modifier == -3
        assert draft.narration_link == "https://example.test/msg/1"
        assert draft.description == "Sneak past the guards"
        with pytest.raises(ValidationError):
            manager.set_might("player1", draft_key, -13)


class TestBurn:
    def test_single_burn_gives_three(self, manager, draft_key, pick):
        brave = pick(draft_key, HELP, "Brave")
        manager.update_selection("player1", draft_key, HELP, 0, brave)
        draft = manager.toggle_burn("player1", draft_key, brave[0])
        assert draft.burned_tags == set(brave)
        assert manager.preview_modifier(draft_key).total == 3

    def test_second_burn_rejected(self, manager, draft_key, pick):
        brave, quick = pick(draft_key, HELP, "Brave", "Quick Blade")
        manager.update_selection("player1", draft_key, HELP, 0, [brave, quick])
        manager.toggle_burn("player1", draft_key, brave)
        with pytest.raises(InvariantViolationError):
            manager.toggle_burn("player1", draft_key, quick)
        assert manager.get_session(draft_key).burned_tags == {brave}

    def test_toggle_again_clears(self, manager, draft_key, pick):
        brave = pick(draft_key, HELP, "Brave")[0]
        manager.update_selection("player1", draft_key, HELP, 0, [brave])
        manager.toggle_burn("player1", draft_key, brave)
        assert manager.toggle_burn("player1", draft_key, brave).burned_tags == set()

    def test_must_be_selected(self, manager, draft_key, pick):
        with pytest.raises(InvariantViolationError):
            manager.toggle_burn("player1", draft_key, pick(draft_key, HELP, "Brave")[0])

    @pytest.mark.parametrize("name", ["Shared Oath", "focused-3", "bold-2"])
    def test_unburnable_tags(self, manager, draft_key, pick, name):
        ref = pick(draft_key, HELP, name)
        manager.update_selection("player1", draft_key, HELP, 0, ref)
        with pytest.raises(InvariantViolationError):
            manager.toggle_burn("player1", draft_key, ref[0])
        assert manager.get_session(draft_key).burned_tags == set()

    @pytest.mark.parametrize("name", ["Swordmaster", "Rope", "Owes the Baron", "Dark Alley"])
    def test_burnable_tags(self, manager, draft_key, pick, name):
        ref = pick(draft_key, HELP, name)
        manager.update_selection("player1", draft_key, HELP, 0, ref)
        assert manager.toggle_burn("player1", draft_key, ref[0]).burned_tags == set(ref)

    def test_borrowed_tag_cannot_be_burned(self, manager, draft_key, helper_character, helper_pick):
        strong = helper_pick(HELP, "Strong Arms")
        manager.borrow_tags("player1", draft_key, HELP, helper_character.id, strong)
        with pytest.raises(InvariantViolationError):
            manager.toggle_burn("player1", draft_key, strong[0])
        assert manager.get_session(draft_key).burned_tags == set()


class TestBorrow:
    def test_lend_help_tag(self, manager, draft_key, helper_character, helper_pick):
        strong = helper_pick(HELP, "Strong Arms")
        draft = manager.borrow_tags("player1", draft_key, HELP, helper_character.id, strong)
        assert draft.help_tags == set(strong)
        assert draft.help_source_owner == {strong[0]: helper_character.id}

    def test_lend_replaces_previous_loan(self, manager, draft_key, helper_character, helper_pick):
        manager.borrow_tags("player1", draft_key, HELP, helper_character.id, helper_pick(HELP, "Strong Arms"))
        draft = manager.borrow_tags("player1", draft_key, HELP, helper_character.id, helper_pick(HELP, "Blacksmith"))
        assert draft.help_tags == set(helper_pick(HELP, "Blacksmith"))

    def test_lend_weakness_to_hinder(self, manager, draft_key, helper_character, helper_pick):
        slow = helper_pick(HINDER, "Slow")
        draft = manager.borrow_tags("player1", draft_key, HINDER, helper_character.id, slow)
        assert draft.hinder_source_owner == {slow[0]: helper_character.id}

    def test_page_edits_keep_borrowed_tags(self, manager, draft_key, helper_character, helper_pick, pick):
        strong = helper_pick(HELP, "Strong Arms")
        manager.borrow_tags("player1", draft_key, HELP, helper_character.id, strong)
        manager.update_selection("player1", draft_key, HELP, 0, pick(draft_key, HELP, "Brave"))
        draft = manager.update_selection("player1", draft_key, HELP, 0, [])
        assert draft.help_tags == set(strong)

    def test_helper_owner_cannot_edit_another_draft(self, manager, draft_key, helper_character, helper_pick):
        with pytest.raises(PermissionDeniedError):
            manager.borrow_tags("player2", draft_key, HELP, helper_character.id, helper_pick(HELP, "Strong Arms"))
        assert manager.get_session(draft_key).help_tags == set()

    def test_editor_may_lend_into_draft(self, manager, draft_key, helper_character, helper_pick):
        draft = manager.borrow_tags(NARRATOR, draft_key, HELP, helper_character.id, helper_pick(HELP, "Strong Arms"))
        assert len(draft.help_tags) == 1

    def test_tags_must_come_from_helper(self, manager, draft_key, helper_character, pick):
        with pytest.raises(InvariantViolationError):
            manager.borrow_tags("player1", draft_key, HELP, helper_character.id, pick(draft_key, HELP, "Brave"))

    def test_cannot_lend_to_own_roll(self, manager, draft_key, sample_character, pick):
        with pytest.raises(InvariantViolationError):
            manager.borrow_tags("player1", draft_key, HELP, sample_character.id, pick(draft_key, HELP, "Brave"))


class TestSubmitAndCancel:
    def test_submit_persists_and_closes_session(self, manager, draft_key, pick):
        manager.update_selection("player1", draft_key, HELP, 0, pick(draft_key, HELP, "Brave"))
        roll = manager.submit("player1", draft_key)
        assert roll.id is not None
        assert roll.status == RollStatus.SUBMITTED
        assert len(roll.help_tags) == 1
        with pytest.raises(SessionNotFoundError):
            manager.get_session(draft_key)

    def test_failed_submit_leaves_draft_untouched(self, manager, draft_key, monkeypatch):
        def fail(*args, **kwargs):
            raise StorageFailureError("disk full")

        monkeypatch.setattr(manager.db, "insert_roll", fail)
        with pytest.raises(StorageFailureError):
            manager.submit("player1", draft_key)
        assert manager.get_session(draft_key).status == RollStatus.DRAFT
        assert manager.get_session(draft_key).id is None

    def test_only_creator_submits(self, manager, draft_key):
        with pytest.raises(PermissionDeniedError):
            manager.submit(NARRATOR, draft_key)
        assert manager.get_session(draft_key).status == RollStatus.DRAFT

    def test_cancel_discards_without_storing(self, manager, draft_key):
        cancelled = manager.cancel("player1", draft_key)
        assert cancelled.status == RollStatus.CANCELLED
        assert manager.repository.list_rolls() == []
        with pytest.raises(SessionNotFoundError):
            manager.get_session(draft_key)

    def test_only_creator_cancels(self, manager, draft_key):
        with pytest.raises(PermissionDeniedError):
            manager.cancel("player2", draft_key)


class TestReview:
    def test_editor_edits_and_confirms(self, manager, draft_key, pick):
        manager.update_selection("player1", draft_key, HELP, 0, pick(draft_key, HELP, "Brave"))
        roll = manager.submit("player1", draft_key)

        manager.open_review(NARRATOR, roll.id)
        key = SessionKey.review(roll.id)
        with pytest.raises(PermissionDeniedError):
            manager.update_selection("player1", key, HELP, 0, [])
        manager.update_selection(NARRATOR, key, HELP, 0, pick(key, HELP, "Brave", "Quick Blade"))

        confirmed = manager.confirm_edits(NARRATOR, key)
        assert confirmed.status == RollStatus.CONFIRMED
        assert confirmed.confirmed_by == NARRATOR
        assert len(confirmed.help_tags) == 2
        assert manager.repository.get_roll(roll.id).status == RollStatus.CONFIRMED

    def test_only_editors_review(self, manager, draft_key):
        roll = manager.submit("player1", draft_key)
        with pytest.raises(PermissionDeniedError):
            manager.open_review("player1", roll.id)

    def test_only_submitted_rolls_are_reviewed(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave"])
        with pytest.raises(InvalidTransitionError):
            manager.open_review(NARRATOR, roll.id)

    def test_review_session_cannot_be_submitted_or_cancelled(self, manager, draft_key):
        roll = manager.submit("player1", draft_key)
        manager.open_review(NARRATOR, roll.id)
        key = SessionKey.review(roll.id)
        with pytest.raises(InvalidTransitionError):
            manager.submit("player1", key)
        with pytest.raises(InvalidTransitionError):
            manager.cancel("player1", key)

    def test_open_review_prunes_stale_tags(self, db, manager, draft_key, pick, sample_character):
        manager.update_selection("player1", draft_key, HELP, 0, pick(draft_key, HELP, "Brave", "focused-3"))
        roll = manager.submit("player1", draft_key)
        db.remove_status(sample_character.statuses[0].id)

        review = manager.open_review(NARRATOR, roll.id)
        assert len(review.help_tags) == 1

    def test_confirm_prunes_tags_removed_during_review(self, db, manager, draft_key, pick, sample_character):
        manager.update_selection("player1", draft_key, HELP, 0, pick(draft_key, HELP, "Brave", "focused-3"))
        roll = manager.submit("player1", draft_key)
        manager.open_review(NARRATOR, roll.id)
        db.remove_status(sample_character.statuses[0].id)

        confirmed = manager.confirm_edits(NARRATOR, SessionKey.review(roll.id))
        assert len(confirmed.help_tags) == 1


class TestAmendment:
    def test_amend_confirmed_roll_returns_to_submitted(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave"])
        manager.open_amendment("player1", roll.id)
        key = SessionKey.amend(roll.id)
        manager.set_details("player1", key, description="Changed plan")

        amended = manager.submit("player1", key)
        assert amended.status == RollStatus.SUBMITTED
        assert amended.confirmed_by is None
        assert amended.description == "Changed plan"
        assert amended.help_tags == roll.help_tags

    def test_only_creator_amends(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave"])
        with pytest.raises(PermissionDeniedError):
            manager.open_amendment("player2", roll.id)

    def test_executed_roll_cannot_be_amended(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave"])
        manager.execute("player1", roll.id)
        with pytest.raises(InvalidTransitionError):
            manager.open_amendment("player1", roll.id)


class TestExecute:
    def test_worked_example(self, manager, confirmed_roll, dice):
        roll = confirmed_roll(help=["Brave", "focused-3"], hinder=["Clumsy"])
        dice.queue(4, 5)
        result = manager.execute("player1", roll.id)
        assert result.power == 3
        assert result.total == 12
        assert result.outcome == Outcome.BEST
        assert result.label == "Success"
        assert not result.is_automatic
        assert result.spending_power == 3
        assert result.roll.status == RollStatus.EXECUTED

    def test_double_one_is_worst(self, manager, confirmed_roll, dice):
        roll = confirmed_roll(help=["Brave", "Quick Blade", "rested-4"])
        dice.queue(1, 1)
        result = manager.execute("player1", roll.id)
        assert result.total == 8
        assert result.outcome == Outcome.WORST
        assert result.is_automatic
        assert result.spending_power is None

    def test_double_six_is_best(self, manager, confirmed_roll, dice):
        roll = confirmed_roll(hinder=["Clumsy", "reckless-2", "Homesick", "Old Grudges", "Dark Alley"])
        dice.queue(6, 6)
        result = manager.execute("player1", roll.id)
        assert result.total == 7
        assert result.outcome == Outcome.BEST
        assert result.is_automatic

    def test_might_adds_to_power(self, manager, confirmed_roll, dice):
        roll = confirmed_roll(help=["Brave"], might=2)
        dice.queue(3, 3)
        result = manager.execute("player1", roll.id)
        assert result.power == 3
        assert result.total == 9
        assert result.outcome == Outcome.MIXED

    def test_burned_tag_does_not_set_sheet_flag(self, db, manager, confirmed_roll, dice, sample_character):
        roll = confirmed_roll(help=["Brave"], burn="Brave")
        dice.queue(3, 3)
        result = manager.execute("player1", roll.id)
        assert result.power == 3
        assert not db.get_theme_tag(sample_character.themes[0].tags[0].id).is_burned

    def test_hedge_risks(self, manager, confirmed_roll, dice):
        roll = confirmed_roll(help=["Brave", "focused-3"], hinder=["Clumsy"])
        dice.queue(4, 5)
        result = manager.execute("player1", roll.id, PowerStrategy.HEDGE_RISKS)
        assert result.strategy_modifier == 1
        assert result.total == 13
        assert result.spending_power == 2

    def test_throw_caution(self, manager, confirmed_roll, dice):
        roll = confirmed_roll(help=["Brave"])
        dice.queue(4, 4)
        result = manager.execute("player1", roll.id, PowerStrategy.THROW_CAUTION)
        assert result.total == 8
        assert result.outcome == Outcome.MIXED
        assert result.spending_power == 2

    def test_invalid_strategy_changes_nothing(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave", "focused-3"])
        with pytest.raises(InvariantViolationError):
            manager.execute("player1", roll.id, PowerStrategy.THROW_CAUTION)
        assert manager.repository.get_roll(roll.id).status == RollStatus.CONFIRMED

    def test_requires_confirmed_status(self, manager, draft_key):
        roll = manager.submit("player1", draft_key)
        with pytest.raises(InvalidTransitionError):
            manager.execute("player1", roll.id)

    def test_cannot_execute_twice(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave"])
        manager.execute("player1", roll.id)
        with pytest.raises(InvalidTransitionError):
            manager.execute("player1", roll.id)

    def test_creator_or_editor_only(self, manager, confirmed_roll):
        roll = confirmed_roll(help=["Brave"])
        with pytest.raises(PermissionDeniedError):
            manager.execute("player2", roll.id)
        assert manager.execute(NARRATOR, roll.id).roll.status == RollStatus.EXECUTED

    def test_unresolvable_tag_fails_hard(self, db, manager, confirmed_roll, sample_character):
        roll = confirmed_roll(help=["Brave", "focused-3"])
        db.remove_status(sample_character.statuses[0].id)
        with pytest.raises(TagNotFoundError):
            manager.execute("player1", roll.id)
        assert manager.repository.get_roll(roll.id).status == RollStatus.CONFIRMED

    def test_unknown_roll(self, manager):
        with pytest.raises(RollNotFoundError):
            manager.execute("player1", 9999)

    def test_three_weakness_rolls_make_theme_ready(self, db, manager, confirmed_roll, sample_character):
        theme_id = sample_character.themes[0].id
        counts, ready = [], []
        for weakness in ("Clumsy", "reckless-2", "Clumsy"):
            roll = confirmed_roll(hinder=[weakness])
            result = manager.execute("player1", roll.id)
            counts.append(result.improvements.improved[0].new_count)
            ready.append([t.theme_id for t in result.improvements.ready_to_develop])
        assert counts == [1, 2, 3]
        assert ready == [[], [], [theme_id]]
        assert db.get_theme(theme_id).improvements == 3

    def test_confirmation_does_not_improve_themes(self, db, confirmed_roll, sample_character):
        confirmed_roll(hinder=["Clumsy"])
        assert db.get_theme(sample_character.themes[0].id).improvements == 0


class TestReactions:
    def test_reaction_pool_excludes_original_tags(self, manager, confirmed_roll, sample_character, scene_id, pick):
        original = confirmed_roll(help=["Brave"], hinder=["Clumsy"])
        manager.execute("player1", original.id)

        draft = manager.start_draft("player1", sample_character.id, scene_id, reaction_to_roll_id=original.id)
        key = SessionKey.draft("player1", scene_id)
        assert draft.is_reaction
        assert not set(manager.get_pool(key, HELP)) & original.help_tags
        assert not set(manager.get_pool(key, HINDER)) & original.hinder_tags
        with pytest.raises(InvariantViolationError):
            manager.update_selection("player1", key, HELP, 0, list(original.help_tags))

    def test_reaction_to_unexecuted_roll(self, manager, confirmed_roll, sample_character, scene_id):
        original = confirmed_roll(help=["Brave"])
        with pytest.raises(InvariantViolationError):
            manager.start_draft("player1", sample_character.id, scene_id, reaction_to_roll_id=original.id)

    def test_reaction_to_unknown_roll(self, manager, sample_character, scene_id):
        with pytest.raises(RollNotFoundError):
            manager.start_draft("player1", sample_character.id, scene_id, reaction_to_roll_id=9999)

    def test_reaction_labels_and_spend(self, manager, confirmed_roll, dice):
        original = confirmed_roll(help=["Brave"])
        manager.execute("player1", original.id)
        reaction = confirmed_roll(reaction_to=original.id)
        dice.queue(5, 5)
        result = manager.execute("player1", reaction.id)
        assert result.label == "Spend Power +1"
        assert result.spending_power == 2

    def test_reaction_without_target(self, manager, sample_character, scene_id, dice):
        draft = manager.start_draft("player1", sample_character.id, scene_id, is_reaction=True)
        assert draft.is_reaction
        assert draft.reaction_to_roll_id is None

        roll = manager.submit("player1", SessionKey.draft("player1", scene_id))
        manager.open_review(NARRATOR, roll.id)
        confirmed = manager.confirm_edits(NARRATOR, SessionKey.review(roll.id))
        assert confirmed.is_reaction

        dice.queue(6, 6)
        result = manager.execute("player1", roll.id)
        assert result.label == "Spend Power +1"
        assert not result.is_automatic
        assert result.spending_power == 2

    def test_reaction_double_one_is_not_automatic(self, manager, confirmed_roll, dice):
        original = confirmed_roll(help=["Brave"])
        manager.execute("player1", original.id)
        reaction = confirmed_roll(reaction_to=original.id)
        dice.queue(1, 1)
        result = manager.execute("player1", reaction.id)
        assert result.label == "Suffer Consequences"
        assert not result.is_automatic
