"""
Approval Gate - Answer-time re-check of question approval

Approval can be revoked after a session starts. The gate is consulted only
when a question is about to be answered, never on clarify or repeat.
"""

import logging
from typing import Optional

from questionnaire.errors import QuestionRepositoryError
from questionnaire.utils.helpers import call_with_timeout

logger = logging.getLogger(__name__)


class ApprovalGate:
    """Re-reads approval state for a single question"""

    def __init__(self, repository, timeout_seconds: Optional[float] = 5.0):
        if not callable(getattr(repository, 'is_approved', None)):
            raise TypeError("repository must have callable is_approved() method")

        self.repository = repository
        self.timeout_seconds = timeout_seconds

    def check(self, question_id: str) -> bool:
        """
        Whether the question (and, for choice questions, at least one option)
        is still approved.

        Raises:
            QuestionRepositoryError: If the repository fails or times out
        """
        try:
            approved = call_with_timeout(self.repository.is_approved, self.timeout_seconds, question_id)
        except QuestionRepositoryError:
            raise
        except Exception as e:
            logger.error(f"Approval check failed for {question_id}: {type(e).__name__} - {e}")
            raise QuestionRepositoryError(f"Approval check failed: {e}") from e

        if not approved:
            logger.warning(f"Question {question_id} is no longer approved")
        return bool(approved)
