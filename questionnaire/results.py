"""
Result types returned by DialogueEngine.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SessionStarted:
    """
    Successful session creation.

    Returned by: StartSession

    Attributes:
        session_id: Opaque session token
        total_questions: Number of eligible questions loaded for the session
    """
    session_id: str
    total_questions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'totalQuestions': self.total_questions,
        }


@dataclass(frozen=True)
class TurnResult:
    """
    Outcome of one turn.

    Returned by: UserTurn

    Attributes:
        session_id: Session the turn was applied to
        assistant_message: Composed text to display or speak
        action: Reply action tag (ReplyAction value)
        state: Dialogue state after the turn (DialogueState value)
        question_id: Id of the question now open, if any
        current_question_index: Index of the question now open
        next_question_text: Text of the question now open, if any
        predicted_option: Option awaiting confirmation, if any
        responses: Stored responses keyed by question id
        debug: Decision source, fallbacks taken, errors
    """
    session_id: str
    assistant_message: str
    action: str
    state: str
    question_id: Optional[str] = None
    current_question_index: int = 0
    next_question_text: Optional[str] = None
    predicted_option: Optional[str] = None
    responses: Dict[str, Dict[str, str]] = field(default_factory=dict)
    debug: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'assistantMessage': self.assistant_message,
            'action': self.action,
            'state': self.state,
            'questionId': self.question_id,
            'currentQuestionIndex': self.current_question_index,
            'nextQuestionText': self.next_question_text,
            'predictedOption': self.predicted_option,
            'responses': self.responses,
        }
