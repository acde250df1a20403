"""
Session Store - Keyed per-conversation state with exclusive per-session access

Responsibilities:
- Create, read, mutate and discard sessions by id
- Serialize concurrent turns on the same session
- Evict abandoned sessions after a sliding TTL

Design principles:
- Session Store = dumb container, Dialogue Engine = the only mutator
- One lock per session; the registry lock is held only for dict access
- mutate() works on a private deep copy and commits it only when the
  mutation function returns, so a raising function leaves no partial writes
- get() returns a deep copy; callers never hold a live reference
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from questionnaire.contracts import HistoryTurn, QuestionSnapshot, ResponseEntry
from questionnaire.errors import SessionNotFound
from questionnaire.utils.dialogue_states import DialogueState
from questionnaire.utils.helpers import generate_session_id

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    Mutable state of one conversation.

    questions may only shrink after creation. current_index points into
    questions and never exceeds len(questions).
    """
    id: str
    language: str
    questions: List[QuestionSnapshot]
    history: List[HistoryTurn] = field(default_factory=list)
    responses: Dict[str, ResponseEntry] = field(default_factory=dict)
    current_index: int = 0
    last_predicted_option: Optional[str] = None
    last_question_options: List[str] = field(default_factory=list)
    state: DialogueState = DialogueState.NOT_STARTED

    def current_question(self) -> Optional[QuestionSnapshot]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def index_of(self, question_id: str) -> Optional[int]:
        for index, question in enumerate(self.questions):
            if question.id == str(question_id):
                return index
        return None

    def responses_as_dict(self) -> Dict[str, Dict[str, str]]:
        return {qid: entry.to_dict() for qid, entry in self.responses.items()}


class _Entry:
    """Registry slot: the session plus its lock and expiry"""

    __slots__ = ('session', 'lock', 'expires_at', 'discarded')

    def __init__(self, session: Session, expires_at: float):
        self.session = session
        self.lock = threading.Lock()
        self.expires_at = expires_at
        self.discarded = False


class SessionStore:
    """In-memory session store with per-session locks and sliding TTL"""

    def __init__(self, ttl_seconds: Optional[float] = 3600, clock: Callable[[], float] = time.monotonic):
        """
        Initialize empty store

        Args:
            ttl_seconds: Idle time after which a session is evicted.
                None or <= 0 disables eviction.
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

        logger.info(f"Session Store initialized (ttl={self.ttl_seconds}s)")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ========================
    # Private Helpers
    # ========================

    def _expiry(self) -> float:
        if self.ttl_seconds is None:
            return float('inf')
        return self._clock() + self.ttl_seconds

    def _lookup(self, session_id: str) -> _Entry:
        """Find a live entry, evicting it first if expired"""
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                raise SessionNotFound(session_id)
            if entry.expires_at <= self._clock():
                del self._entries[session_id]
                entry.discarded = True
                logger.info(f"Session {session_id} expired")
                raise SessionNotFound(session_id)
            return entry

    # ========================
    # Public API
    # ========================

    def create(self, language: str, questions: List[QuestionSnapshot]) -> str:
        """
        Create a session and return its id
        """
        self.sweep_expired()

        session_id = generate_session_id()
        session = Session(id=session_id, language=language, questions=list(questions))

        with self._lock:
            self._entries[session_id] = _Entry(session, self._expiry())

        logger.info(f"Created session {session_id} ({language}, {len(questions)} questions)")
        return session_id

    def get(self, session_id: str) -> Session:
        """
        Read a copy of a session

        Raises:
            SessionNotFound: If id is unknown, expired or discarded
        """
        entry = self._lookup(session_id)
        with entry.lock:
            if entry.discarded:
                raise SessionNotFound(session_id)
            return copy.deepcopy(entry.session)

    def mutate(self, session_id: str, fn: Callable[[Session], Any], discard: bool = False) -> Any:
        """
        Apply fn to a session as one atomic read-modify-write.

        Concurrent calls for the same id run one at a time. fn receives a
        working copy; the copy replaces the stored session only if fn returns.

        Args:
            session_id: Session to mutate
            fn: Mutation function, called with the working copy
            discard: Remove the session after fn returns, inside the same
                critical section

        Returns:
            Whatever fn returns

        Raises:
            SessionNotFound: If id is unknown, expired or discarded meanwhile
        """
        entry = self._lookup(session_id)

        with entry.lock:
            if entry.discarded:
                raise SessionNotFound(session_id)

            working = copy.deepcopy(entry.session)
            result = fn(working)

            if discard:
                entry.discarded = True
                with self._lock:
                    self._entries.pop(session_id, None)
                logger.info(f"Discarded session {session_id}")
            else:
                entry.session = working
                entry.expires_at = self._expiry()

        return result

    def sweep_expired(self) -> int:
        """
        Evict every session idle past the TTL

        Returns:
            int: Number of sessions evicted
        """
        if self.ttl_seconds is None:
            return 0

        now = self._clock()
        with self._lock:
            # Sessions mid-turn are skipped; their expiry is refreshed on commit
            expired = [
                sid for sid, entry in self._entries.items()
                if entry.expires_at <= now and not entry.lock.locked()
            ]
            for sid in expired:
                self._entries.pop(sid).discarded = True

        if expired:
            logger.info(f"Evicted {len(expired)} expired sessions")
        return len(expired)
