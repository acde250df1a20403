"""
Semantic contracts for the questionnaire engine.

This module defines immutable data structures that serve as contracts
between modules.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists inside contracts
- No dependencies on other engine modules

Contents:
- QuestionSnapshot: read-only copy of a question taken at session start
- ResponseEntry: one stored answer
- HistoryTurn: one conversation history entry
- Decision: structured classification recovered from generation output

Usage:
    from questionnaire.contracts import QuestionSnapshot, Decision
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

QUESTION_TYPE_CHOICE = "choice"
QUESTION_TYPE_FREETEXT = "freetext"
QUESTION_TYPES = {QUESTION_TYPE_CHOICE, QUESTION_TYPE_FREETEXT}

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass(frozen=True)
class QuestionSnapshot:
    """
    Immutable question representation held by a session.

    Built by the Question Set Resolver from repository records. The Dialogue
    Engine never mutates a snapshot; when a question loses approval the
    snapshot is removed from the session instead.

    Attributes:
        id: Repository question identifier (one per language variant)
        text: Question text shown to the user
        type: 'choice' or 'freetext'
        options: Approved option texts in sort order. Empty for freetext.
        language: Locale code of this variant, e.g. 'en'
        group_id: Cross-language grouping key shared by all variants
        explanation: Plain-language explanation read out on request

    Examples:
        >>> q = QuestionSnapshot(
        ...     id='q-en-1',
        ...     text='How often do you forget appointments?',
        ...     type='choice',
        ...     options=('Never', 'Rarely', 'Often'),
        ...     language='en',
        ...     group_id='g1'
        ... )
        >>> q.is_choice
        True
    """
    id: str
    text: str
    type: str = QUESTION_TYPE_FREETEXT
    options: Tuple[str, ...] = ()
    language: str = "en"
    group_id: Optional[str] = None
    explanation: str = ""

    @property
    def is_choice(self) -> bool:
        return self.type == QUESTION_TYPE_CHOICE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'text': self.text,
            'type': self.type,
            'options': list(self.options),
            'language': self.language,
            'group_id': self.group_id,
            'explanation': self.explanation,
        }


@dataclass(frozen=True)
class ResponseEntry:
    """
    One stored answer, keyed by question id in Session.responses.

    question is the question text at the time of answering, so a later
    revocation does not change what the user was asked.
    """
    question: str
    answer: str
    raw_utterance: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'question': self.question,
            'answer': self.answer,
            'rawTranscript': self.raw_utterance,
        }


@dataclass(frozen=True)
class HistoryTurn:
    """One conversation history entry used as generation context"""
    role: str
    text: str


@dataclass(frozen=True)
class Decision:
    """
    Structured result of classifying an utterance.

    Produced from the Response Extractor's payload. The action tag is kept as
    a raw string here; the Dialogue Engine parses it into the closed enum of
    the context it asked about.
    """
    assistant_message: str = ""
    action: Optional[str] = None
    question_id: Optional[str] = None
    predicted_option: Optional[str] = None
    confirmed_answer: Optional[str] = None
    current_question_index: Optional[int] = None

    @staticmethod
    def from_payload(payload: Dict[str, Any]) -> "Decision":
        """
        Build a Decision from a decoded JSON object.

        Array-valued assistantMessage/action are collapsed to their first
        element; empty strings become None for the optional fields.
        """
        def first(value):
            if isinstance(value, list):
                return value[0] if value else None
            return value

        def text_or_none(value):
            value = first(value)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        index = first(payload.get('currentQuestionIndex'))
        if isinstance(index, bool) or not isinstance(index, (int, float)):
            index = None
        else:
            index = int(index)

        question_id = first(payload.get('questionId'))

        return Decision(
            assistant_message=text_or_none(payload.get('assistantMessage')) or "",
            action=text_or_none(payload.get('action')),
            question_id=str(question_id) if question_id is not None else None,
            predicted_option=text_or_none(payload.get('predictedOption')),
            confirmed_answer=text_or_none(payload.get('confirmedAnswer')),
            current_question_index=index,
        )
