"""
Error taxonomy for the questionnaire engine.

Creation errors abort session creation. Turn errors are converted by the
Dialogue Engine into an apology turn; the session survives.

MalformedGenerationOutput is never raised to callers. The Response Extractor
returns None instead and the engine applies a deterministic fallback. Its
name tags the condition in adapter warnings and in debug['output_error'].
"""


class QuestionnaireError(Exception):
    """Base class for all engine errors"""
    pass


class SessionCreationFailed(QuestionnaireError):
    """Question Repository unreachable (or timed out) while creating a session"""
    pass


class NoEligibleQuestions(QuestionnaireError):
    """No approved questions exist for the requested language"""
    pass


class SessionNotFound(QuestionnaireError):
    """Session id unknown, expired, or already submitted"""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidQuestionContext(QuestionnaireError):
    """Answer or re-answer references a question absent from the session"""
    pass


class GenerationUnavailable(QuestionnaireError):
    """Language generation call failed or timed out"""
    pass


class MalformedGenerationOutput(QuestionnaireError):
    """Generation output could not be decoded into a decision object"""
    pass


class QuestionRepositoryError(QuestionnaireError):
    """Question Repository read failed"""
    pass
