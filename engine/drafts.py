"""In-process store for editable roll sessions (drafts, reviews, amendments)."""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from models.enums import RollSide, SessionMode
from models.roll import RollProposal
from models.tags import TagReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionKey:
    """Identifies one editable session.

    Drafts are keyed by actor and scene, so a new draft in the same scene
    overwrites the previous one. Review and amendment sessions are keyed by
    roll id.
    """
    mode: SessionMode
    subject: str
    scene_id: Optional[str] = None

    @classmethod
    def draft(cls, actor_id: str, scene_id: str) -> "SessionKey":
        return cls(SessionMode.DRAFT, actor_id, scene_id)

    @classmethod
    def review(cls, roll_id: int) -> "SessionKey":
        return cls(SessionMode.REVIEW, str(roll_id))

    @classmethod
    def amend(cls, roll_id: int) -> "SessionKey":
        return cls(SessionMode.AMEND, str(roll_id))


@dataclass
class RollSession:
    """A roll being edited plus the UI state needed to merge page selections."""
    key: SessionKey
    proposal: RollProposal
    pages: dict[RollSide, int] = field(
        default_factory=lambda: {RollSide.HELP: 0, RollSide.HINDER: 0}
    )
    excluded: frozenset[TagReference] = frozenset()


class DraftStore:
    """Bounded session map with a time-to-live and least-recently-used eviction.

    Every get or put refreshes an entry's expiry and moves it to the back
    of the eviction order.
    """

    def __init__(self, ttl_seconds: float, max_entries: int,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[SessionKey, tuple[float, RollSession]] = OrderedDict()

    def get(self, key: SessionKey) -> Optional[RollSession]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, session = entry
        now = self._clock()
        if expires_at <= now:
            del self._entries[key]
            logger.debug("Session %s expired", key)
            return None
        self._entries[key] = (now + self.ttl_seconds, session)
        self._entries.move_to_end(key)
        return session

    def put(self, session: RollSession):
        self.purge_expired()
        self._entries[session.key] = (self._clock() + self.ttl_seconds, session)
        self._entries.move_to_end(session.key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.info("Session store full, evicted %s", evicted)

    def pop(self, key: SessionKey) -> Optional[RollSession]:
        entry = self._entries.pop(key, None)
        return entry[1] if entry else None

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired sessions", len(expired))
        return len(expired)

    def __contains__(self, key: SessionKey) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
