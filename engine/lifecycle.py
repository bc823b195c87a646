"""Roll proposal lifecycle: drafts, role-gated edits, review, execution."""

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from config.exceptions import (
    CharacterNotFoundError,
    InvalidTransitionError,
    InvariantViolationError,
    PermissionDeniedError,
    SessionNotFoundError,
    ValidationError,
)
from config.settings import Settings, get_settings
from engine.dice import (
    DiceRoller,
    classify,
    default_die,
    roll_2d6,
    spending_power,
    strategy_modifiers,
)
from engine.drafts import DraftStore, RollSession, SessionKey
from engine.modifier import ModifierBreakdown, calculate_breakdown, calculate_modifier
from engine.persistence import RollRepository
from engine.pool import TagPoolCollector, page_count, paginate
from engine.resolver import TagResolver
from models.character import Character
from models.database import Database
from models.enums import PowerStrategy, RollSide, RollStatus, SessionMode, TagParentKind
from models.roll import ExecutionResult, RollProposal
from models.tags import TagReference

logger = logging.getLogger(__name__)

_UNBURNABLE_KINDS = (TagParentKind.FELLOWSHIP_TAG, TagParentKind.CHARACTER_STATUS)


class RollLifecycleManager:
    """Entry point for every roll operation a chat front end performs.

    Each operation returns a snapshot of the affected roll; the live
    session objects never leave the manager.
    """

    def __init__(
        self,
        db: Database,
        settings: Optional[Settings] = None,
        has_editor_role: Optional[Callable[[str], bool]] = None,
        dice_roller: DiceRoller = default_die,
        store: Optional[DraftStore] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.resolver = TagResolver(db)
        self.collector = TagPoolCollector(db)
        self.repository = RollRepository(db, self.resolver, self.settings.improvement_threshold)
        self.store = store or DraftStore(
            self.settings.draft_ttl_seconds, self.settings.draft_max_entries
        )
        if has_editor_role is None:
            editors = frozenset(self.settings.roll_editor_ids)
            has_editor_role = editors.__contains__
        self.has_editor_role = has_editor_role
        self.dice_roller = dice_roller

    # ---- Session creation ----

    def start_draft(
        self,
        actor_id: str,
        character_id: int,
        scene_id: str,
        description: Optional[str] = None,
        narration_link: Optional[str] = None,
        justification_notes: Optional[str] = None,
        reaction_to_roll_id: Optional[int] = None,
        might_modifier: int = 0,
        is_reaction: bool = False,
    ) -> RollProposal:
        """Open a draft for the actor in a scene, replacing any earlier draft there.

        A reaction may name the executed roll it answers or stand on its own.
        """
        character = self._load_character(character_id)
        if character.owner_id not in (None, actor_id) and not self.has_editor_role(actor_id):
            self._deny(actor_id, f"roll for character {character_id}")
        self._check_might(might_modifier)

        excluded = frozenset()
        if reaction_to_roll_id is not None:
            excluded = self._reaction_exclusions(reaction_to_roll_id)

        now = datetime.now()
        proposal = RollProposal(
            creator_id=actor_id,
            acting_character_id=character_id,
            scene_id=scene_id,
            description=description,
            narration_link=narration_link,
            justification_notes=justification_notes,
            is_reaction=is_reaction or reaction_to_roll_id is not None,
            reaction_to_roll_id=reaction_to_roll_id,
            status=RollStatus.DRAFT,
            might_modifier=might_modifier,
            created_at=now,
            updated_at=now,
        )
        key = SessionKey.draft(actor_id, scene_id)
        self.store.put(RollSession(key=key, proposal=proposal, excluded=excluded))
        logger.info(
            "Draft started by %s for character %d in scene %s%s",
            actor_id, character_id, scene_id,
            f" (reaction to #{reaction_to_roll_id})" if reaction_to_roll_id else "",
        )
        return proposal.snapshot()

    def open_review(self, actor_id: str, roll_id: int) -> RollProposal:
        """Open an editor's confirm-pending session on a submitted roll."""
        if not self.has_editor_role(actor_id):
            self._deny(actor_id, "review rolls")
        roll = self.repository.get_roll(roll_id)
        if roll.status != RollStatus.SUBMITTED:
            raise InvalidTransitionError(roll.status.value, "review")
        self.repository.delete_invalid_tags(roll_id)
        return self._open_stored(SessionKey.review(roll_id), roll_id, actor_id)

    def open_amendment(self, actor_id: str, roll_id: int) -> RollProposal:
        """Reopen a submitted or confirmed roll for its creator to edit."""
        roll = self.repository.get_roll(roll_id)
        if actor_id != roll.creator_id:
            self._deny(actor_id, f"amend roll #{roll_id}")
        if roll.status not in (RollStatus.SUBMITTED, RollStatus.CONFIRMED):
            raise InvalidTransitionError(roll.status.value, "amend")
        self.repository.delete_invalid_tags(roll_id)
        return self._open_stored(SessionKey.amend(roll_id), roll_id, actor_id)

    def _open_stored(self, key: SessionKey, roll_id: int, actor_id: str) -> RollProposal:
        roll = self.repository.get_roll(roll_id)
        excluded = frozenset()
        if roll.reaction_to_roll_id is not None:
            excluded = self._reaction_exclusions(roll.reaction_to_roll_id)
        self.store.put(RollSession(key=key, proposal=roll, excluded=excluded))
        logger.info("%s session on roll #%d opened by %s", key.mode.value.capitalize(), roll_id, actor_id)
        return roll.snapshot()

    def get_session(self, key: SessionKey) -> RollProposal:
        return self._session(key).proposal.snapshot()

    # ---- Selection edits ----

    def get_pool(self, key: SessionKey, side: RollSide) -> list[TagReference]:
        """Full selectable pool for one side of a session."""
        return self._pool(self._session(key), side)

    def get_page(self, key: SessionKey, side: RollSide) -> tuple[int, int, list[TagReference]]:
        """Return (page, page count, references on that page) for one side."""
        session = self._session(key)
        pool = self._pool(session, side)
        size = self.settings.pool_page_size
        page = session.pages[side]
        return page, page_count(pool, size), paginate(pool, page, size)

    def set_page(self, actor_id: str, key: SessionKey, side: RollSide, page: int) -> RollProposal:
        session = self._session(key)
        self._check_edit(actor_id, session)
        self._check_page(self._pool(session, side), page)
        session.pages[side] = page
        return session.proposal.snapshot()

    def update_selection(
        self,
        actor_id: str,
        key: SessionKey,
        side: RollSide,
        page: int,
        refs: Iterable[TagReference],
    ) -> RollProposal:
        """Merge the selection made on one page into the roll.

        References on the page that are not in ``refs`` are deselected;
        selections on other pages are left alone.
        """
        session = self._session(key)
        self._check_edit(actor_id, session)

        pool = self._pool(session, side)
        self._check_page(pool, page)
        page_refs = paginate(pool, page, self.settings.pool_page_size)
        on_page = {ref: ref for ref in page_refs}
        chosen = set(refs)
        off_page = chosen - on_page.keys()
        if off_page:
            raise InvariantViolationError(
                "Selected tags are not on the current page",
                {"page": page, "tags": sorted(r.key for r in off_page)},
            )

        proposal = session.proposal
        current = proposal.help_tags if side == RollSide.HELP else proposal.hinder_tags
        updated = {ref for ref in current if ref not in on_page}
        updated |= {on_page[ref] for ref in chosen}

        session.pages[side] = page
        if side == RollSide.HELP:
            proposal.help_tags = updated
            proposal.burned_tags &= updated
            proposal.help_source_owner = {
                r: o for r, o in proposal.help_source_owner.items() if r in updated
            }
        else:
            proposal.hinder_tags = updated
            proposal.hinder_source_owner = {
                r: o for r, o in proposal.hinder_source_owner.items() if r in updated
            }
        proposal.updated_at = datetime.now()
        return proposal.snapshot()

    def toggle_burn(self, actor_id: str, key: SessionKey, ref: TagReference) -> RollProposal:
        """Burn a help tag for this roll, or clear the burn if it is the burned one."""
        session = self._session(key)
        self._check_edit(actor_id, session)
        proposal = session.proposal

        if ref in proposal.burned_tags:
            proposal.burned_tags.discard(ref)
            return proposal.snapshot()

        if ref not in proposal.help_tags:
            raise InvariantViolationError("Only selected help tags can be burned", {"tag": ref.key})
        if ref in proposal.help_source_owner:
            raise InvariantViolationError("Borrowed tags cannot be burned", {"tag": ref.key})
        if ref.parent_kind in _UNBURNABLE_KINDS:
            raise InvariantViolationError(
                f"Tags of kind '{ref.parent_kind.value}' cannot be burned", {"tag": ref.key},
            )
        resolved = self.resolver.resolve(ref)
        if resolved.is_status or resolved.is_weakness:
            raise InvariantViolationError(
                f"'{resolved.display_name}' is a {resolved.category.value} and cannot be burned",
                {"tag": ref.key},
            )
        if proposal.burned_tags:
            raise InvariantViolationError(
                "Only one tag can be burned per roll",
                {"burned": next(iter(proposal.burned_tags)).key, "tag": ref.key},
            )
        proposal.burned_tags.add(ref)
        return proposal.snapshot()

    def borrow_tags(
        self,
        actor_id: str,
        key: SessionKey,
        side: RollSide,
        helper_character_id: int,
        refs: Iterable[TagReference],
    ) -> RollProposal:
        """Lend tags from another character's sheet to help or hinder this roll.

        Replaces whatever that character lent on that side before.
        """
        session = self._session(key)
        self._check_edit(actor_id, session)
        proposal = session.proposal
        helper = self._load_character(helper_character_id)
        if helper_character_id == proposal.acting_character_id:
            raise InvariantViolationError(
                "A character cannot lend tags to its own roll",
                {"character_id": helper_character_id},
            )

        pool = {
            ref: ref
            for ref in self.collector.collect_pool(
                helper, proposal.scene_id,
                include_weaknesses=side == RollSide.HINDER,
                exclude=session.excluded,
            )
        }
        chosen = set(refs)
        unknown = chosen - pool.keys()
        if unknown:
            raise InvariantViolationError(
                "Tags are not available from that character",
                {"character_id": helper_character_id, "tags": sorted(r.key for r in unknown)},
            )

        if side == RollSide.HELP:
            selected, owners = proposal.help_tags, proposal.help_source_owner
        else:
            selected, owners = proposal.hinder_tags, proposal.hinder_source_owner
        previous = {r for r, owner in owners.items() if owner == helper_character_id}
        updated = (selected - previous) | {pool[r] for r in chosen}
        new_owners = {r: o for r, o in owners.items() if o != helper_character_id and r in updated}
        new_owners.update({r: helper_character_id for r in chosen})

        if side == RollSide.HELP:
            proposal.help_tags = updated
            proposal.help_source_owner = new_owners
            proposal.burned_tags = {r for r in proposal.burned_tags if r in updated and r not in new_owners}
        else:
            proposal.hinder_tags = updated
            proposal.hinder_source_owner = new_owners
        proposal.updated_at = datetime.now()
        logger.info(
            "%s lent %d %s tags from character %d to %s",
            actor_id, len(chosen), side.value, helper_character_id, key,
        )
        return proposal.snapshot()

    def set_might(self, actor_id: str, key: SessionKey, value: int) -> RollProposal:
        session = self._session(key)
        self._check_edit(actor_id, session)
        self._check_might(value)
        session.proposal.might_modifier = value
        return session.proposal.snapshot()

    def set_details(
        self,
        actor_id: str,
        key: SessionKey,
        description: Optional[str] = None,
        narration_link: Optional[str] = None,
        justification_notes: Optional[str] = None,
    ) -> RollProposal:
        """Update the free-text fields; None leaves a field unchanged."""
        session = self._session(key)
        self._check_edit(actor_id, session)
        proposal = session.proposal
        if description is not None:
            proposal.description = description
        if narration_link is not None:
            proposal.narration_link = narration_link
        if justification_notes is not None:
            proposal.justification_notes = justification_notes
        proposal.updated_at = datetime.now()
        return proposal.snapshot()

    def preview_modifier(self, key: SessionKey) -> ModifierBreakdown:
        proposal = self._session(key).proposal
        return calculate_breakdown(
            proposal.help_tags, proposal.hinder_tags, proposal.burned_tags, self.resolver
        )

    # ---- Transitions ----

    def submit(self, actor_id: str, key: SessionKey) -> RollProposal:
        """Persist a draft or an amendment and close its session."""
        session = self._session(key)
        proposal = session.proposal
        if key.mode == SessionMode.REVIEW:
            raise InvalidTransitionError(proposal.status.value, "submit")
        if actor_id != proposal.creator_id:
            self._deny(actor_id, "submit this roll")

        if key.mode == SessionMode.DRAFT:
            submitted = proposal.snapshot()
            submitted.status = RollStatus.SUBMITTED
            roll_id = self.repository.create_roll(submitted)
        else:
            roll_id = proposal.id
            self.repository.update_roll(
                roll_id,
                status=RollStatus.SUBMITTED,
                confirmed_by=None,
                **self._editable_fields(proposal),
            )
        self.store.pop(key)
        logger.info("Roll #%d submitted by %s", roll_id, actor_id)
        return self.repository.get_roll(roll_id)

    def cancel(self, actor_id: str, key: SessionKey) -> RollProposal:
        """Discard a draft without storing anything."""
        session = self._session(key)
        proposal = session.proposal
        if key.mode != SessionMode.DRAFT:
            raise InvalidTransitionError(proposal.status.value, "cancel")
        if actor_id != proposal.creator_id:
            self._deny(actor_id, "cancel this roll")
        self.store.pop(key)
        proposal.status = RollStatus.CANCELLED
        logger.info("Draft %s cancelled by %s", key, actor_id)
        return proposal.snapshot()

    def confirm_edits(self, actor_id: str, key: SessionKey) -> RollProposal:
        """Store the reviewer's edits and mark the roll confirmed."""
        session = self._session(key)
        if key.mode != SessionMode.REVIEW:
            raise InvalidTransitionError(session.proposal.status.value, "confirm")
        if not self.has_editor_role(actor_id):
            self._deny(actor_id, "confirm rolls")

        proposal = session.proposal
        stale = {
            ref for ref in proposal.help_tags | proposal.hinder_tags
            if self.resolver.try_resolve(ref) is None
        }
        if stale:
            logger.info("Dropping %d unresolvable tags from roll #%d", len(stale), proposal.id)
            proposal.help_tags -= stale
            proposal.hinder_tags -= stale
            proposal.burned_tags -= stale
            for owners in (proposal.help_source_owner, proposal.hinder_source_owner):
                for ref in stale & owners.keys():
                    del owners[ref]

        confirmed = self.repository.update_roll(
            proposal.id,
            status=RollStatus.CONFIRMED,
            confirmed_by=actor_id,
            **self._editable_fields(proposal),
        )
        self.store.pop(key)
        logger.info("Roll #%d confirmed by %s", proposal.id, actor_id)
        return confirmed

    def execute(
        self,
        actor_id: str,
        roll_id: int,
        strategy: PowerStrategy = PowerStrategy.NONE,
    ) -> ExecutionResult:
        """Roll the dice for a confirmed roll and apply its bookkeeping."""
        roll = self.repository.get_roll(roll_id)
        if actor_id != roll.creator_id and not self.has_editor_role(actor_id):
            self._deny(actor_id, f"execute roll #{roll_id}")
        if roll.status != RollStatus.CONFIRMED:
            raise InvalidTransitionError(roll.status.value, "execute")

        base = calculate_modifier(roll.help_tags, roll.hinder_tags, roll.burned_tags, self.resolver)
        power = base + roll.might_modifier
        roll_modifier, spend_modifier = strategy_modifiers(strategy, power)

        die1, die2 = roll_2d6(self.dice_roller)
        total = die1 + die2 + power + roll_modifier
        dice = classify(die1, die2, total, roll.is_reaction)
        spend = spending_power(power, dice.outcome, spend_modifier, roll.is_reaction)

        improvements = self.repository.mark_executed(roll_id, roll.hinder_tags)
        executed = self.repository.get_roll(roll_id)
        logger.info(
            "Roll #%d executed by %s: %d+%d%+d%+d = %d (%s)",
            roll_id, actor_id, die1, die2, power, roll_modifier, total, dice.label,
        )
        return ExecutionResult(
            roll=executed,
            die1=die1,
            die2=die2,
            power=power,
            might_modifier=roll.might_modifier,
            strategy=strategy,
            strategy_modifier=roll_modifier,
            total=total,
            outcome=dice.outcome,
            label=dice.label,
            is_automatic=dice.is_automatic,
            spending_power=spend,
            improvements=improvements,
        )

    # ---- Helpers ----

    def _session(self, key: SessionKey) -> RollSession:
        session = self.store.get(key)
        if session is None:
            raise SessionNotFoundError("No open roll session", {"session": str(key)})
        return session

    def _check_edit(self, actor_id: str, session: RollSession):
        if session.key.mode == SessionMode.REVIEW:
            if not self.has_editor_role(actor_id):
                self._deny(actor_id, "edit a roll under review")
        elif actor_id != session.proposal.creator_id and not self.has_editor_role(actor_id):
            self._deny(actor_id, "edit this roll")

    def _deny(self, actor_id: str, action: str):
        logger.warning("Permission denied: %s tried to %s", actor_id, action)
        raise PermissionDeniedError(actor_id, action)

    def _check_page(self, pool: list[TagReference], page: int):
        pages = page_count(pool, self.settings.pool_page_size)
        if not 0 <= page < pages:
            raise InvariantViolationError(
                f"Page {page} is out of range", {"page": page, "pages": pages},
            )

    def _check_might(self, value: int):
        if not self.settings.might_min <= value <= self.settings.might_max:
            raise ValidationError(
                f"Might modifier must be between {self.settings.might_min} "
                f"and {self.settings.might_max}",
                {"might_modifier": value},
            )

    def _load_character(self, character_id: int) -> Character:
        character = self.db.get_character(character_id)
        if character is None:
            raise CharacterNotFoundError(character_id)
        return character

    def _pool(self, session: RollSession, side: RollSide) -> list[TagReference]:
        proposal = session.proposal
        character = None
        if proposal.acting_character_id is not None:
            character = self.db.get_character(proposal.acting_character_id)
        return self.collector.collect_pool(
            character,
            proposal.scene_id,
            include_weaknesses=side == RollSide.HINDER,
            exclude=session.excluded,
        )

    def _reaction_exclusions(self, roll_id: int) -> frozenset[TagReference]:
        target = self.repository.get_roll(roll_id)
        if target.status != RollStatus.EXECUTED:
            raise InvariantViolationError(
                f"Roll #{roll_id} has not been executed and cannot be reacted to",
                {"roll_id": roll_id, "status": target.status.value},
            )
        return frozenset(target.help_tags | target.hinder_tags)

    @staticmethod
    def _editable_fields(proposal: RollProposal) -> dict:
        return {
            "description": proposal.description,
            "narration_link": proposal.narration_link,
            "justification_notes": proposal.justification_notes,
            "might_modifier": proposal.might_modifier,
            "help_tags": proposal.help_tags,
            "hinder_tags": proposal.hinder_tags,
            "burned_tags": proposal.burned_tags,
            "help_source_owner": proposal.help_source_owner,
            "hinder_source_owner": proposal.hinder_source_owner,
        }
