"""
Question Set Resolver - Eligible question set for a new session

Responsibilities:
- Load approved questions for a language from the Question Repository
- Attach approved options and drop choice questions without any
- Fall back to per-question approval when no fully-approved group exists
- Convert repository records into QuestionSnapshot contracts

Design principles:
- Runs once per session, at creation
- Deterministic: repository creation order is preserved
- Every repository read is bounded by a timeout
- Fail fast: repository failures become SessionCreationFailed, an empty
  result becomes NoEligibleQuestions
"""

import logging
from typing import Any, Dict, List, Optional

from questionnaire.contracts import QuestionSnapshot, QUESTION_TYPE_CHOICE
from questionnaire.errors import NoEligibleQuestions, SessionCreationFailed
from questionnaire.utils.helpers import call_with_timeout

logger = logging.getLogger(__name__)


class QuestionSetResolver:
    """
    Resolves the ordered question set for a session.

    Holds no per-session state; safe to share across sessions.
    """

    def __init__(self, repository, allow_ungrouped_fallback: bool = True,
                 timeout_seconds: Optional[float] = 5.0):
        """
        Initialize resolver

        Args:
            repository: Object with approved_questions() and approved_options()
            allow_ungrouped_fallback: Admit per-question approval when no
                fully-approved group exists for the language
            timeout_seconds: Upper bound for each repository read

        Raises:
            TypeError: If repository lacks the required methods
        """
        for method in ('approved_questions', 'approved_options'):
            if not callable(getattr(repository, method, None)):
                raise TypeError(f"repository must have callable {method}() method")

        self.repository = repository
        self.allow_ungrouped_fallback = allow_ungrouped_fallback
        self.timeout_seconds = timeout_seconds

        logger.info(
            f"Question Set Resolver initialized "
            f"(ungrouped_fallback={allow_ungrouped_fallback}, timeout={timeout_seconds}s)"
        )

    def resolve(self, language: str) -> List[QuestionSnapshot]:
        """
        Resolve eligible questions for a language.

        Args:
            language: Locale code, e.g. 'en'

        Returns:
            list: QuestionSnapshot objects in repository creation order

        Raises:
            SessionCreationFailed: If the repository fails or times out
            NoEligibleQuestions: If nothing is eligible after fallback
        """
        if not isinstance(language, str) or not language.strip():
            raise ValueError("language must be a non-empty string")

        language = language.strip()

        # Step 1: fully-approved groups only
        records = self._read(self.repository.approved_questions, language, fully_approved_groups=True)

        # Step 4: per-question fallback
        if not records and self.allow_ungrouped_fallback:
            logger.warning(
                f"No fully-approved question groups for language '{language}'. "
                f"Falling back to per-question approval; the questionnaire may "
                f"differ across languages"
            )
            records = self._read(self.repository.approved_questions, language, fully_approved_groups=False)

        # Steps 2 and 3
        snapshots = []
        for record in records:
            snapshot = self._to_snapshot(record)
            if snapshot is not None:
                snapshots.append(snapshot)

        if not snapshots:
            logger.error(f"No eligible questions for language '{language}'")
            raise NoEligibleQuestions(f"No approved questions available for language '{language}'")

        logger.info(f"Resolved {len(snapshots)} questions for language '{language}'")
        return snapshots

    def _read(self, method, *args, **kwargs):
        """Bounded repository read; any failure aborts session creation"""
        try:
            return call_with_timeout(method, self.timeout_seconds, *args, **kwargs)
        except Exception as e:
            logger.error(f"Question repository read failed: {type(e).__name__} - {e}")
            raise SessionCreationFailed(f"Question repository unavailable: {e}") from e

    def _to_snapshot(self, record: Dict[str, Any]) -> Optional[QuestionSnapshot]:
        """Build a snapshot, or None when a choice question has no approved options"""
        question_type = record['type']
        options = ()

        if question_type == QUESTION_TYPE_CHOICE:
            options = tuple(self._read(self.repository.approved_options, record['id']))
            if not options:
                logger.info(f"Dropping choice question {record['id']}: no approved options")
                return None

        return QuestionSnapshot(
            id=str(record['id']),
            text=record['text'],
            type=question_type,
            options=options,
            language=record['language'],
            group_id=record.get('group_id'),
            explanation=record.get('explanation') or "",
        )
