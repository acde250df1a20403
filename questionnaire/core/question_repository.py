"""
Question Repository - In-memory question bank with approval state

Responsibilities:
- Load question/option records from a JSON question bank
- Answer approval queries for the Question Set Resolver and Approval Gate
- Compute fully-approved question groups across languages

NOT responsible for:
- Authoring, translating or approving content (external admin tooling)
- Session state

Question bank layout (data/questions.json):
{
    "questions": [
        {
            "id": "q1-en",
            "group_id": "q1",
            "language": "en",
            "text": "How often do you forget appointments?",
            "type": "choice",
            "approved": true,
            "status": "approved",
            "options": [
                {"text": "Never", "approved": true, "status": "approved", "sort_order": 0}
            ]
        }
    ]
}

List order is creation order and is preserved in every query result.
"""

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from questionnaire.contracts import QUESTION_TYPE_CHOICE, QUESTION_TYPES
from questionnaire.errors import QuestionRepositoryError

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_ERROR = "error"
VALID_STATUSES = {STATUS_PENDING, STATUS_APPROVED, STATUS_ERROR}


def _is_record_approved(record: Dict[str, Any]) -> bool:
    """A question or option counts as approved only with both flags set"""
    return bool(record.get('approved')) and record.get('status') == STATUS_APPROVED


class InMemoryQuestionRepository:
    """Thread-safe question bank held in memory"""

    def __init__(self, questions: Optional[List[Dict[str, Any]]] = None):
        """
        Initialize repository from question records

        Args:
            questions: List of question dicts (see module docstring)

        Raises:
            ValueError: If a record is missing required keys or has an invalid type
        """
        self._lock = threading.Lock()
        self._questions: List[Dict[str, Any]] = []
        self._by_id: Dict[str, Dict[str, Any]] = {}

        for record in questions or []:
            self._add_unlocked(record)

        logger.info(f"Question repository initialized with {len(self._questions)} questions")

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryQuestionRepository":
        """
        Load repository from a JSON question bank

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a valid question bank
        """
        bank_file = Path(path)
        if not bank_file.exists():
            raise FileNotFoundError(f"Question bank not found: {path}")

        with open(bank_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict) or not isinstance(data.get('questions'), list):
            raise ValueError(f"Question bank must contain a 'questions' list: {path}")

        return cls(data['questions'])

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _add_unlocked(self, record: Dict[str, Any]) -> None:
        required_keys = {'id', 'language', 'text', 'type'}
        missing_keys = required_keys - set(record.keys())
        if missing_keys:
            raise ValueError(f"question record missing required keys: {missing_keys}")

        if record['type'] not in QUESTION_TYPES:
            raise ValueError(
                f"question {record['id']} has invalid type '{record['type']}', "
                f"expected one of {sorted(QUESTION_TYPES)}"
            )

        question_id = str(record['id'])
        if question_id in self._by_id:
            raise ValueError(f"duplicate question id: {question_id}")

        stored = copy.deepcopy(record)
        stored['id'] = question_id
        stored.setdefault('group_id', question_id)
        stored.setdefault('approved', False)
        stored.setdefault('status', STATUS_PENDING)
        stored['options'] = sorted(
            stored.get('options') or [],
            key=lambda opt: opt.get('sort_order', 0)
        )

        self._questions.append(stored)
        self._by_id[question_id] = stored

    def _get_unlocked(self, question_id: str) -> Dict[str, Any]:
        record = self._by_id.get(str(question_id))
        if record is None:
            raise QuestionRepositoryError(f"Unknown question id: {question_id}")
        return record

    def _approved_options_unlocked(self, record: Dict[str, Any]) -> List[str]:
        return [opt['text'] for opt in record['options'] if _is_record_approved(opt)]

    def _variant_ready_unlocked(self, record: Dict[str, Any]) -> bool:
        if not _is_record_approved(record):
            return False
        if record['type'] == QUESTION_TYPE_CHOICE:
            return len(self._approved_options_unlocked(record)) > 0
        return True

    def _fully_approved_group_ids_unlocked(self) -> set:
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for record in self._questions:
            groups.setdefault(record['group_id'], []).append(record)

        return {
            group_id for group_id, variants in groups.items()
            if all(self._variant_ready_unlocked(v) for v in variants)
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def approved_questions(self, language: str, fully_approved_groups: bool = True) -> List[Dict[str, Any]]:
        """
        Approved question records for a language, in creation order.

        Args:
            language: Locale code
            fully_approved_groups: If True, restrict to groups where every
                language variant is approved. If False, per-question approval only.

        Returns:
            list: Deep copies of question records (options included, unfiltered)
        """
        with self._lock:
            group_ids = self._fully_approved_group_ids_unlocked() if fully_approved_groups else None
            result = []
            for record in self._questions:
                if record['language'] != language or not _is_record_approved(record):
                    continue
                if group_ids is not None and record['group_id'] not in group_ids:
                    continue
                result.append(copy.deepcopy(record))
            return result

    def approved_options(self, question_id: str) -> List[str]:
        """
        Approved option texts for a question, in sort order

        Raises:
            QuestionRepositoryError: If question id is unknown
        """
        with self._lock:
            return self._approved_options_unlocked(self._get_unlocked(question_id))

    def is_approved(self, question_id: str) -> bool:
        """
        Whether a question is currently approved.

        Choice questions additionally need at least one approved option.
        Unknown ids (deleted questions) report False.
        """
        with self._lock:
            record = self._by_id.get(str(question_id))
            if record is None:
                return False
            return self._variant_ready_unlocked(record)

    def set_question_approval(self, question_id: str, approved: bool, status: Optional[str] = None) -> None:
        """
        Update approval flags of a question (admin tooling hook)

        Raises:
            QuestionRepositoryError: If question id is unknown
            ValueError: If status is not a valid approval status
        """
        if status is None:
            status = STATUS_APPROVED if approved else STATUS_PENDING
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid approval status: {status}")

        with self._lock:
            record = self._get_unlocked(question_id)
            record['approved'] = approved
            record['status'] = status

        logger.info(f"Question {question_id} approval set to approved={approved}, status={status}")

    def set_option_approval(self, question_id: str, option_text: str, approved: bool,
                            status: Optional[str] = None) -> None:
        """Update approval flags of one option (admin tooling hook)"""
        if status is None:
            status = STATUS_APPROVED if approved else STATUS_PENDING
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid approval status: {status}")

        with self._lock:
            record = self._get_unlocked(question_id)
            for opt in record['options']:
                if opt['text'] == option_text:
                    opt['approved'] = approved
                    opt['status'] = status
                    return
            raise QuestionRepositoryError(
                f"Question {question_id} has no option '{option_text}'"
            )
