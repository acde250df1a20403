"""
Command types for DialogueEngine control flow.

Commands are the public interface to DialogueEngine.handle(); the HTTP layer
and the console harness only build commands and read results.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StartSession:
    """
    Create a new session for a language.

    Returns: SessionStarted with the session id and question count.
    """
    language: str = "en"


@dataclass(frozen=True)
class UserTurn:
    """
    Process one client turn for an existing session.

    action is the raw client action string; unknown actions are answered with
    a clarification rather than rejected at construction time.

    Returns: TurnResult.
    """
    session_id: str
    action: str
    utterance: str = ""
    current_question_id: Optional[str] = None
    question_id_to_re_answer: Optional[str] = None


# Command union type for type hints
Command = StartSession | UserTurn
