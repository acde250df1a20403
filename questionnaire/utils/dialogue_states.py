"""
Dialogue state and action vocabularies for the questionnaire engine.

Invariants:
- Exactly one DialogueState is active per session
- State changes are owned by the Dialogue Engine
- Every client action is checked against ALLOWED_ACTIONS before dispatch
- Model output tags are parsed into closed per-context enums; unknown tags
  parse to None and trigger the context's deterministic fallback

Design:
- All enums are string-based for JSON serialization
- Client actions, model decisions and reply actions are separate vocabularies
  so a model tag can never be mistaken for a client command
"""

from enum import Enum
from typing import Optional


class _TaggedEnum(str, Enum):
    """String enum with tolerant parsing of external tags"""

    @classmethod
    def parse(cls, value) -> Optional["_TaggedEnum"]:
        if isinstance(value, list):
            value = value[0] if value else None
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return None


class DialogueState(_TaggedEnum):
    """
    Explicit dialogue state for one session.

    NOT_STARTED:
        Session created, no greeting issued yet.
        Exit: init_questionnaire -> AWAITING_READINESS

    AWAITING_READINESS:
        Greeting issued, waiting for the user to say they are ready.
        Exit: ready -> ASKING_QUESTION (or COMPLETED if no questions)

    ASKING_QUESTION:
        Question at current_index is open for an answer.
        Exit: answered -> ASKING_QUESTION (next) or COMPLETED
              vague answer -> AWAITING_CONFIRMATION

    AWAITING_CONFIRMATION:
        Engine inferred an option and asked the user to confirm it.
        explain re-reads the question and keeps the prediction open
        Exit: confirmed/corrected -> ASKING_QUESTION (next) or COMPLETED
              denied -> ASKING_QUESTION (same index)

    COMPLETED:
        Every question handled. Re-answers and submission still allowed.

    SUBMITTED:
        Terminal. The session is destroyed in the same step.
    """
    NOT_STARTED = "not_started"
    AWAITING_READINESS = "awaiting_readiness"
    ASKING_QUESTION = "asking_question"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    SUBMITTED = "submitted"


class ClientAction(_TaggedEnum):
    """Actions a client may send with a turn"""
    INIT_QUESTIONNAIRE = "init_questionnaire"
    CONFIRM_READINESS = "confirm_readiness"
    ANSWER = "answer"
    RE_ANSWER = "re_answer_specific_question"
    CONFIRM_VAGUE_ANSWER = "confirm_vague_answer"
    REPEAT_QUESTION = "repeat_question"
    SUBMIT_FINAL_RESPONSES = "submit_final_responses"
    EXPLAIN = "explain"


class ReadinessDecision(_TaggedEnum):
    """Model tags for the readiness confirmation prompt"""
    CONFIRM_READINESS = "confirm_readiness"
    CLARIFY = "clarify"


class AnswerDecision(_TaggedEnum):
    """Model tags for the answer classification prompt"""
    ASK_QUESTION = "ask_question"
    COMPLETE = "complete"
    CLARIFY_AND_CONFIRM = "clarify_and_confirm"
    CLARIFY = "clarify"
    REPEAT_QUESTION = "repeat_question_gemini_detected"


class ConfirmationDecision(_TaggedEnum):
    """Model tags for the vague-answer confirmation prompt"""
    CONFIRM = "confirm"
    DENY = "deny"
    NEW_OPTION = "new_option"
    REPEAT = "repeat_question"


class ReplyAction(_TaggedEnum):
    """Action tag returned to the client with every turn"""
    ASK_READINESS = "ask_readiness"
    ASK_QUESTION = "ask_question"
    CLARIFY = "clarify"
    CLARIFY_AND_CONFIRM = "clarify_and_confirm"
    REPEAT_QUESTION = "repeat_question"
    RE_ASK = "re_ask"
    COMPLETE = "complete"
    SUBMITTED = "submitted"
    ERROR = "error"


_ANSWERING = {
    ClientAction.ANSWER,
    ClientAction.RE_ANSWER,
    ClientAction.CONFIRM_VAGUE_ANSWER,
    ClientAction.REPEAT_QUESTION,
    ClientAction.EXPLAIN,
    ClientAction.SUBMIT_FINAL_RESPONSES,
}

# Single source of truth for per-state dispatch
ALLOWED_ACTIONS = {
    DialogueState.NOT_STARTED: {
        ClientAction.INIT_QUESTIONNAIRE,
        ClientAction.SUBMIT_FINAL_RESPONSES,
    },
    DialogueState.AWAITING_READINESS: {
        ClientAction.INIT_QUESTIONNAIRE,
        ClientAction.CONFIRM_READINESS,
        ClientAction.SUBMIT_FINAL_RESPONSES,
    },
    DialogueState.ASKING_QUESTION: set(_ANSWERING),
    DialogueState.AWAITING_CONFIRMATION: set(_ANSWERING),
    DialogueState.COMPLETED: {
        ClientAction.RE_ANSWER,
        ClientAction.SUBMIT_FINAL_RESPONSES,
    },
    DialogueState.SUBMITTED: set(),
}


def is_action_allowed(state: DialogueState, action: ClientAction) -> bool:
    """Check whether a client action is valid in the given state"""
    return action in ALLOWED_ACTIONS.get(state, set())
