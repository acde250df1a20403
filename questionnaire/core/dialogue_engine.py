"""
Dialogue Engine - Per-session questionnaire state machine

Responsibilities:
- Create sessions from the resolved question set
- Dispatch client actions against the explicit DialogueState
- Re-check approval at answer time and drop revoked questions
- Classify utterances through the Language Model Adapter
- Apply deterministic fallbacks when model output cannot be decoded
- Compose the outbound message and keep conversation history
- Summarize, archive and destroy the session on submission

Design principles:
- One turn = one atomic SessionStore.mutate() (per-session serialization)
- The engine is the only session mutator
- Model tags are advisory: index bounds and completion are recomputed by
  the engine after every classified action
- Generation happens before any state change that depends on it, so a
  failed call leaves the dialogue where it was
- Turn-level failures become apology turns; the session survives
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from questionnaire.commands import StartSession, UserTurn
from questionnaire.contracts import (
    HistoryTurn,
    QuestionSnapshot,
    ResponseEntry,
    ROLE_ASSISTANT,
    ROLE_USER,
)
from questionnaire.core.language_model_adapter import Classification
from questionnaire.core.session_store import Session
from questionnaire.core.summary_generator import generate_summary
from questionnaire.errors import (
    GenerationUnavailable,
    InvalidQuestionContext,
    QuestionRepositoryError,
)
from questionnaire.results import SessionStarted, TurnResult
from questionnaire.utils.dialogue_states import (
    AnswerDecision,
    ClientAction,
    ConfirmationDecision,
    DialogueState,
    ReadinessDecision,
    ReplyAction,
    is_action_allowed,
)
from questionnaire.utils.option_matcher import canonical_option, match_option

logger = logging.getLogger(__name__)


@dataclass
class _Reply:
    """Outbound message under construction for one turn"""
    message: str
    action: ReplyAction
    debug: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _AnswerOutcome:
    """Answer classification after validation against the question"""
    decision: AnswerDecision
    message: str
    answer: Optional[str] = None
    predicted_option: Optional[str] = None
    source: str = "model"


class DialogueEngine:
    """
    Orchestrates questionnaire sessions

    Shared across sessions; all per-session data lives in the SessionStore.
    """

    READINESS_PATTERN = re.compile(r"\b(yes|ready|start|begin|ok|sure)\b", re.IGNORECASE)
    AFFIRM_PATTERN = re.compile(r"\b(yes|yeah|yep|correct|right|exactly|sure|ok|okay)\b", re.IGNORECASE)
    DENY_PATTERN = re.compile(r"\b(no|nope|not|wrong|incorrect)\b", re.IGNORECASE)
    REPEAT_PATTERN = re.compile(r"\b(repeat|again|pardon)\b", re.IGNORECASE)

    FALLBACK_GREETING = (
        "Hello! I'm your assistant for this questionnaire. It helps us understand "
        "your daily experiences, and honest answers help us support you better. "
        "Are you ready to begin?"
    )
    READY_ACK = "Great, let's begin."
    ASK_READINESS_AGAIN = "No problem. Just let me know when you are ready to begin the questionnaire."
    EMPTY_QUESTIONNAIRE = "There are no questions to answer right now, so the questionnaire is already complete. Thank you!"
    COMPLETION_MESSAGE = "You have completed all questions. Thank you for your responses! You can now submit them."
    QUESTION_UNAVAILABLE = "That question is no longer available, so let's move on."
    APOLOGY = "I'm sorry, I'm having trouble processing that right now. Please try again."
    INVALID_CONTEXT = "I'm not sure which question we are on. Please restart the questionnaire or try again."
    UNKNOWN_ACTION = "Sorry, I didn't understand that request. Could you please try again?"
    NO_EXPLANATION = "This question is about your own everyday experience. There is no right or wrong answer."

    def __init__(self, session_store, question_resolver, approval_gate, language_model,
                 submission_archive=None):
        """
        Initialize engine with collaborators

        Args:
            session_store: SessionStore instance
            question_resolver: QuestionSetResolver instance
            approval_gate: ApprovalGate instance
            language_model: LanguageModelAdapter instance
            submission_archive: Optional SubmissionArchive; None disables archiving

        Raises:
            TypeError: If any collaborator is missing a required method
        """
        self._validate_modules(session_store, question_resolver, approval_gate,
                               language_model, submission_archive)

        self.store = session_store
        self.resolver = question_resolver
        self.approval_gate = approval_gate
        self.language_model = language_model
        self.archive = submission_archive

        self._handlers = {
            ClientAction.INIT_QUESTIONNAIRE: self._handle_init,
            ClientAction.CONFIRM_READINESS: self._handle_confirm_readiness,
            ClientAction.ANSWER: self._handle_answer,
            ClientAction.RE_ANSWER: self._handle_re_answer,
            ClientAction.CONFIRM_VAGUE_ANSWER: self._handle_confirm_vague_answer,
            ClientAction.REPEAT_QUESTION: self._handle_repeat,
            ClientAction.EXPLAIN: self._handle_explain,
            ClientAction.SUBMIT_FINAL_RESPONSES: self._handle_submit,
        }

        logger.info("Dialogue Engine initialized")

    def _validate_modules(self, session_store, question_resolver, approval_gate,
                          language_model, submission_archive):
        """Validate collaborator interfaces"""
        for method in ('create', 'get', 'mutate'):
            if not callable(getattr(session_store, method, None)):
                raise TypeError(f"session_store must have callable {method}() method")

        if not callable(getattr(question_resolver, 'resolve', None)):
            raise TypeError("question_resolver must have callable resolve() method")

        if not callable(getattr(approval_gate, 'check', None)):
            raise TypeError("approval_gate must have callable check() method")

        for method in ('readiness_intro', 'readiness_confirmation',
                       'answer_classification', 'vague_confirmation', 'explanation'):
            if not callable(getattr(language_model, method, None)):
                raise TypeError(f"language_model must have callable {method}() method")

        if submission_archive is not None and not callable(getattr(submission_archive, 'save_submission', None)):
            raise TypeError("submission_archive must have callable save_submission() method")

    # =========================================================================
    # Public API
    # =========================================================================

    def handle(self, command):
        """
        Single entry point for commands

        Returns:
            SessionStarted for StartSession, TurnResult for UserTurn

        Raises:
            TypeError: If command type is unknown
        """
        if isinstance(command, StartSession):
            return self.start_session(command.language)
        if isinstance(command, UserTurn):
            return self._process_turn(command)
        raise TypeError(f"Unknown command type: {type(command).__name__}")

    def start_session(self, language: str) -> SessionStarted:
        """
        Create a session for a language

        Raises:
            SessionCreationFailed: If the repository is unavailable
            NoEligibleQuestions: If no question is eligible
        """
        questions = self.resolver.resolve(language)
        session_id = self.store.create(language, questions)
        return SessionStarted(session_id=session_id, total_questions=len(questions))

    def turn(self, session_id: str, action: str, utterance: str = "",
             current_question_id: Optional[str] = None,
             question_id_to_re_answer: Optional[str] = None) -> TurnResult:
        """
        Execute one dialogue step

        Raises:
            SessionNotFound: If session id is unknown or expired
        """
        return self._process_turn(UserTurn(
            session_id=session_id,
            action=action,
            utterance=utterance or "",
            current_question_id=current_question_id,
            question_id_to_re_answer=question_id_to_re_answer,
        ))

    def get_responses(self, session_id: str) -> Dict[str, Any]:
        """
        Current responses and progress of a session

        Raises:
            SessionNotFound: If session id is unknown or expired
        """
        session = self.store.get(session_id)
        return {
            'sessionId': session.id,
            'state': session.state.value,
            'currentQuestionIndex': session.current_index,
            'totalQuestions': len(session.questions),
            'questions': [question.to_dict() for question in session.questions],
            'responses': session.responses_as_dict(),
        }

    # =========================================================================
    # Turn processing
    # =========================================================================

    def _process_turn(self, command: UserTurn) -> TurnResult:
        action = ClientAction.parse(command.action)
        discard = action == ClientAction.SUBMIT_FINAL_RESPONSES

        return self.store.mutate(
            command.session_id,
            lambda session: self._apply_turn(session, command, action),
            discard=discard
        )

    def _apply_turn(self, session: Session, command: UserTurn,
                    action: Optional[ClientAction]) -> TurnResult:
        """Run one turn against the working copy of a session"""
        utterance = (command.utterance or "").strip()
        state_before = session.state

        if action is None:
            logger.warning(f"[{session.id}] Unrecognized action: {command.action!r}")
            reply = _Reply(self.UNKNOWN_ACTION, ReplyAction.CLARIFY, {'unknown_action': command.action})

        elif not is_action_allowed(session.state, action):
            reply = self._reject(session, action)

        else:
            try:
                reply = self._handlers[action](session, command, utterance)
            except InvalidQuestionContext as e:
                logger.warning(f"[{session.id}] Invalid question context: {e}")
                reply = _Reply(self.INVALID_CONTEXT, ReplyAction.ERROR, {'error': str(e)})
            except (GenerationUnavailable, QuestionRepositoryError) as e:
                logger.error(f"[{session.id}] Turn failed ({action.value}): {type(e).__name__} - {e}")
                reply = _Reply(self.APOLOGY, ReplyAction.ERROR, {
                    'error': str(e),
                    'error_type': type(e).__name__,
                })

        if session.state != state_before:
            logger.info(f"[{session.id}] {state_before.value} -> {session.state.value}")

        self._record_history(session, utterance, reply.message)
        return self._build_turn_result(session, reply)

    def _record_history(self, session: Session, utterance: str, message: str) -> None:
        """
        Append the user utterance and the composed reply.

        A retried turn (same utterance, same reply as the last two entries)
        adds nothing; the reply is never appended twice in a row.
        """
        history = session.history
        user_turn = HistoryTurn(role=ROLE_USER, text=utterance)
        assistant_turn = HistoryTurn(role=ROLE_ASSISTANT, text=message)

        if utterance and history[-2:] == [user_turn, assistant_turn]:
            logger.debug(f"[{session.id}] Retried turn; history unchanged")
            return

        if utterance:
            history.append(user_turn)
        if not history or history[-1] != assistant_turn:
            history.append(assistant_turn)

    def _build_turn_result(self, session: Session, reply: _Reply) -> TurnResult:
        open_question = None
        if session.state in (DialogueState.ASKING_QUESTION, DialogueState.AWAITING_CONFIRMATION):
            open_question = session.current_question()

        return TurnResult(
            session_id=session.id,
            assistant_message=reply.message,
            action=reply.action.value,
            state=session.state.value,
            question_id=open_question.id if open_question else None,
            current_question_index=session.current_index,
            next_question_text=open_question.text if open_question else None,
            predicted_option=session.last_predicted_option,
            responses=session.responses_as_dict(),
            debug=reply.debug,
        )

    def _reject(self, session: Session, action: ClientAction) -> _Reply:
        """Action known but not valid in the current state"""
        logger.warning(f"[{session.id}] Rejected {action.value} in state {session.state.value}")

        state = session.state
        if state == DialogueState.NOT_STARTED:
            message = "Let's get started first. Please begin the questionnaire."
        elif state == DialogueState.AWAITING_READINESS:
            message = "Before we begin, please let me know if you are ready to start the questionnaire."
        elif state == DialogueState.COMPLETED:
            message = ("You have already answered all questions. You can submit your "
                       "responses or change a specific answer.")
        else:
            message = f"We're in the middle of the questionnaire. {self._question_prompt(session, session.current_index)}"

        return _Reply(message, ReplyAction.CLARIFY, {
            'rejected_action': action.value,
            'state': state.value,
        })

    # =========================================================================
    # Question helpers
    # =========================================================================

    def _question_prompt(self, session: Session, index: int) -> str:
        """Question text with its number and options, as read to the user"""
        question = session.questions[index]
        prompt = f"Question {index + 1}: {question.text}"
        if question.is_choice and question.options:
            prompt += f" Options: {', '.join(question.options)}."
        return prompt

    def _open_question(self, session: Session, index: int, prefix: str = "",
                       action: ReplyAction = ReplyAction.ASK_QUESTION) -> _Reply:
        """Make questions[index] the open question and compose its prompt"""
        question = session.questions[index]
        session.current_index = index
        session.state = DialogueState.ASKING_QUESTION
        session.last_predicted_option = None
        session.last_question_options = list(question.options)

        message = f"{prefix} {self._question_prompt(session, index)}".strip()
        return _Reply(message, action, {'question_id': question.id})

    def _complete(self, session: Session, prefix: str = "") -> _Reply:
        session.current_index = len(session.questions)
        session.state = DialogueState.COMPLETED
        session.last_predicted_option = None
        session.last_question_options = []

        message = f"{prefix} {self.COMPLETION_MESSAGE}".strip()
        return _Reply(message, ReplyAction.COMPLETE)

    def _next_unanswered_index(self, session: Session, handled_index: int) -> Optional[int]:
        """
        First unanswered question after handled_index, wrapping to the start.

        In a linear walk this is handled_index + 1. After a re-answer it is
        where the user left off.
        """
        total = len(session.questions)
        for index in list(range(handled_index + 1, total)) + list(range(0, min(handled_index + 1, total))):
            if session.questions[index].id not in session.responses:
                return index
        return None

    def _advance(self, session: Session, handled_index: int, prefix: str = "") -> _Reply:
        """Open the next question, or complete when none is left"""
        next_index = self._next_unanswered_index(session, handled_index)
        if next_index is None:
            return self._complete(session, prefix)
        return self._open_question(session, next_index, prefix)

    def _store_answer(self, session: Session, question: QuestionSnapshot,
                      answer: str, utterance: str) -> None:
        session.responses[question.id] = ResponseEntry(
            question=question.text,
            answer=answer,
            raw_utterance=utterance
        )
        logger.info(f"[{session.id}] Stored answer for {question.id}")

    @staticmethod
    def _debug_for(classification: Classification, **fields) -> Dict[str, Any]:
        """Debug fields for a classified turn, naming undecodable output"""
        if not classification.parsed:
            fields['output_error'] = classification.output_error
        return fields

    def _drop_unapproved(self, session: Session, index: int) -> _Reply:
        """
        Remove a revoked question and move to the next still-approved one.

        Questions after it that were also revoked are dropped too. If the
        repository fails while checking a follow-up question, that question
        is opened anyway; the gate checks it again when it is answered.
        """
        dropped = [session.questions.pop(index).id]
        session.last_predicted_option = None
        unchecked = None

        resume = self._next_unanswered_index(session, index - 1)
        while resume is not None:
            candidate = session.questions[resume]
            try:
                if self.approval_gate.check(candidate.id):
                    break
            except QuestionRepositoryError as e:
                logger.warning(f"[{session.id}] Could not re-check {candidate.id}, opening it unchecked: {e}")
                unchecked = candidate.id
                break
            dropped.append(session.questions.pop(resume).id)
            resume = self._next_unanswered_index(session, resume - 1)

        logger.warning(f"[{session.id}] Dropped revoked questions: {dropped}")

        if resume is None:
            reply = self._complete(session, self.QUESTION_UNAVAILABLE)
        else:
            reply = self._open_question(session, resume, self.QUESTION_UNAVAILABLE)
        reply.debug['dropped_questions'] = dropped
        if unchecked is not None:
            reply.debug['unchecked_question'] = unchecked
        return reply

    # =========================================================================
    # Action handlers
    # =========================================================================

    def _handle_init(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        classification = self.language_model.readiness_intro(session.language, len(session.questions))
        decision = classification.decision

        if decision is not None and decision.assistant_message:
            message, source = decision.assistant_message, 'model'
        else:
            message, source = self.FALLBACK_GREETING, 'fallback'

        session.state = DialogueState.AWAITING_READINESS
        session.current_index = 0
        session.last_predicted_option = None

        return _Reply(message, ReplyAction.ASK_READINESS, self._debug_for(classification, source=source))

    def _handle_confirm_readiness(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        classification = self.language_model.readiness_confirmation(utterance, session.language)
        decision = classification.decision
        tag = ReadinessDecision.parse(decision.action) if decision is not None else None

        if tag is None:
            ready = bool(self.READINESS_PATTERN.search(utterance))
            ack = self.READY_ACK if ready else self.ASK_READINESS_AGAIN
            source = 'regex_fallback'
        else:
            ready = tag == ReadinessDecision.CONFIRM_READINESS
            ack = decision.assistant_message or (self.READY_ACK if ready else self.ASK_READINESS_AGAIN)
            source = 'model'

        if not ready:
            return _Reply(ack, ReplyAction.CLARIFY, self._debug_for(classification, source=source))

        if not session.questions:
            session.current_index = 0
            session.state = DialogueState.COMPLETED
            return _Reply(f"{ack} {self.EMPTY_QUESTIONNAIRE}", ReplyAction.COMPLETE, self._debug_for(classification, source=source))

        reply = self._open_question(session, 0, prefix=ack)
        reply.debug.update(self._debug_for(classification, source=source))
        return reply

    def _handle_answer(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        question = session.current_question()
        if question is None:
            raise InvalidQuestionContext("No open question in session")

        if command.current_question_id is not None and str(command.current_question_id) != question.id:
            if session.index_of(command.current_question_id) is None:
                raise InvalidQuestionContext(
                    f"Question {command.current_question_id} is not part of this session"
                )
            logger.warning(
                f"[{session.id}] Client answered {command.current_question_id} "
                f"but open question is {question.id}; using open question"
            )

        return self._answer_question(session, session.current_index, utterance)

    def _handle_re_answer(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        question_id = command.question_id_to_re_answer or command.current_question_id
        if question_id is None:
            raise InvalidQuestionContext("Re-answer requires a question id")

        index = session.index_of(question_id)
        if index is None:
            raise InvalidQuestionContext(f"Question {question_id} is not part of this session")

        return self._answer_question(session, index, utterance)

    def _answer_question(self, session: Session, index: int, utterance: str) -> _Reply:
        question = session.questions[index]

        if not self.approval_gate.check(question.id):
            return self._drop_unapproved(session, index)

        classification = self.language_model.answer_classification(
            question=question,
            question_index=index,
            total_questions=len(session.questions),
            utterance=utterance,
            history=session.history
        )
        outcome = self._interpret_answer(question, index, len(session.questions), utterance, classification)
        debug = self._debug_for(classification, decision=outcome.decision.value, source=outcome.source)

        # Generation succeeded; retarget to the handled question
        session.current_index = index

        if outcome.decision in (AnswerDecision.ASK_QUESTION, AnswerDecision.COMPLETE):
            self._store_answer(session, question, outcome.answer, utterance)
            reply = self._advance(session, index, prefix=outcome.message)

        elif outcome.decision == AnswerDecision.CLARIFY_AND_CONFIRM:
            session.state = DialogueState.AWAITING_CONFIRMATION
            session.last_predicted_option = outcome.predicted_option
            session.last_question_options = list(question.options)
            reply = _Reply(f"{self._question_prompt(session, index)} {outcome.message}",
                           ReplyAction.CLARIFY_AND_CONFIRM)

        else:
            reply_action = (ReplyAction.REPEAT_QUESTION
                            if outcome.decision == AnswerDecision.REPEAT_QUESTION
                            else ReplyAction.CLARIFY)
            reply = self._open_question(session, index, prefix=outcome.message, action=reply_action)

        reply.debug.update(debug)
        return reply

    def _interpret_answer(self, question: QuestionSnapshot, index: int, total: int,
                          utterance: str, classification: Classification) -> _AnswerOutcome:
        """Validate the model's answer decision against the question"""
        decision = classification.decision
        tag = AnswerDecision.parse(decision.action) if decision is not None else None

        if tag is None:
            return self._fallback_answer(question, utterance)

        message = decision.assistant_message

        if tag == AnswerDecision.COMPLETE and index < total - 1:
            logger.warning(f"Model asserted complete on question {index + 1} of {total}; advancing instead")

        if tag in (AnswerDecision.ASK_QUESTION, AnswerDecision.COMPLETE):
            if not question.is_choice:
                answer = decision.confirmed_answer or utterance
                if answer:
                    return _AnswerOutcome(tag, message or "Thank you.", answer=answer)
                return _AnswerOutcome(AnswerDecision.CLARIFY, message or "Could you please answer the question?")

            answer = canonical_option(decision.confirmed_answer, question.options)
            if answer is not None:
                return _AnswerOutcome(tag, message or f'Got it, "{answer}".', answer=answer)

            predicted = (match_option(decision.confirmed_answer or "", question.options)
                         or match_option(utterance, question.options))
            if predicted is not None:
                return self._confirm_outcome(predicted, message="", source='model_corrected')
            return _AnswerOutcome(AnswerDecision.CLARIFY, "Please choose one of the options.", source='model_corrected')

        if tag == AnswerDecision.CLARIFY_AND_CONFIRM:
            predicted = None
            if question.is_choice:
                predicted = (canonical_option(decision.predicted_option, question.options)
                             or canonical_option(decision.confirmed_answer, question.options))
            if predicted is None:
                return _AnswerOutcome(AnswerDecision.CLARIFY, message or "Could you please clarify your answer?",
                                      source='model_corrected')
            return self._confirm_outcome(predicted, message)

        if tag == AnswerDecision.REPEAT_QUESTION:
            return _AnswerOutcome(tag, message or "Of course, here is the question again.")

        return _AnswerOutcome(AnswerDecision.CLARIFY, message or "Could you please clarify your answer?")

    def _confirm_outcome(self, predicted: str, message: str, source: str = 'model') -> _AnswerOutcome:
        return _AnswerOutcome(
            AnswerDecision.CLARIFY_AND_CONFIRM,
            message or f'It sounds like "{predicted}". Is that right?',
            predicted_option=predicted,
            source=source
        )

    def _fallback_answer(self, question: QuestionSnapshot, utterance: str) -> _AnswerOutcome:
        """Deterministic answer handling when model output is unusable"""
        if question.is_choice:
            predicted = match_option(utterance, question.options)
            if predicted is not None:
                return self._confirm_outcome(
                    predicted,
                    message=(f'I had trouble fully processing your response. Based on "{utterance}", '
                             f'I understood "{predicted}". Did I get that right?'),
                    source='keyword_fallback'
                )
            return _AnswerOutcome(AnswerDecision.CLARIFY, "I didn't quite catch that. Please choose one of the options.",
                                  source='keyword_fallback')

        if utterance:
            return _AnswerOutcome(AnswerDecision.ASK_QUESTION, "Thank you.", answer=utterance, source='fallback')
        return _AnswerOutcome(AnswerDecision.CLARIFY, "I didn't catch an answer. Could you please answer the question?",
                              source='fallback')

    def _handle_confirm_vague_answer(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        question = session.current_question()
        if question is None:
            raise InvalidQuestionContext("No open question in session")

        predicted = session.last_predicted_option
        if not predicted:
            options = session.last_question_options or list(question.options)
            message = "Could you please restate your answer"
            if options:
                message += f" or choose one of: {', '.join(options)}"
            session.state = DialogueState.ASKING_QUESTION
            return _Reply(message + "?", ReplyAction.CLARIFY, {'source': 'no_prediction'})

        index = session.current_index
        if not self.approval_gate.check(question.id):
            return self._drop_unapproved(session, index)

        classification = self.language_model.vague_confirmation(question, predicted, utterance)
        decision = classification.decision
        tag = ConfirmationDecision.parse(decision.action) if decision is not None else None
        message = decision.assistant_message if decision is not None else ""
        source = 'model'

        answer = None
        if tag is None:
            tag, answer = self._fallback_confirmation(utterance, predicted, question.options)
            message, source = "", 'regex_fallback'
        elif tag == ConfirmationDecision.CONFIRM:
            answer = canonical_option(decision.confirmed_answer, question.options) or predicted
        elif tag == ConfirmationDecision.NEW_OPTION:
            answer = (canonical_option(decision.confirmed_answer, question.options)
                      or match_option(utterance, question.options))
            if answer is None:
                tag = ConfirmationDecision.DENY

        debug = self._debug_for(classification, decision=tag.value if tag else None, source=source)

        if answer is not None:
            self._store_answer(session, question, answer, utterance)
            reply = self._advance(session, index, prefix=message or f'Got it, "{answer}".')

        elif tag == ConfirmationDecision.REPEAT:
            reply = _Reply(
                f'{self._question_prompt(session, index)} Earlier I understood "{predicted}". Is that right?',
                ReplyAction.REPEAT_QUESTION
            )

        elif tag == ConfirmationDecision.DENY:
            reply = self._open_question(session, index, prefix=message or "Okay, let's try again.",
                                        action=ReplyAction.CLARIFY)

        else:
            reply = _Reply(
                f'Sorry, I didn\'t catch that. Did you mean "{predicted}"? Please say yes or no.',
                ReplyAction.CLARIFY_AND_CONFIRM
            )

        reply.debug.update(debug)
        return reply

    def _fallback_confirmation(self, utterance: str, predicted: str, options):
        """
        Regex reading of a confirmation reply

        Returns:
            tuple: (ConfirmationDecision or None, answer or None)
        """
        option = match_option(utterance, options)

        if self.REPEAT_PATTERN.search(utterance):
            return ConfirmationDecision.REPEAT, None
        if self.DENY_PATTERN.search(utterance):
            if option is not None and option != predicted:
                return ConfirmationDecision.NEW_OPTION, option
            return ConfirmationDecision.DENY, None
        if self.AFFIRM_PATTERN.search(utterance):
            return ConfirmationDecision.CONFIRM, predicted
        if option is not None:
            return ConfirmationDecision.NEW_OPTION, option
        return None, None

    def _handle_repeat(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        if session.current_question() is None:
            raise InvalidQuestionContext("No open question to repeat")
        return self._open_question(session, session.current_index, action=ReplyAction.REPEAT_QUESTION)

    def _handle_explain(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        """
        Explain the open question, then ask it again.

        The index never moves. A prediction awaiting confirmation stays open.
        """
        question = session.current_question()
        if question is None:
            raise InvalidQuestionContext("No open question to explain")

        index = session.current_index
        classification = self.language_model.explanation(question, index)
        decision = classification.decision

        if decision is not None and decision.assistant_message:
            explanation, source = decision.assistant_message, 'model'
        else:
            explanation, source = question.explanation or self.NO_EXPLANATION, 'fallback'

        message = f"{explanation} {self._question_prompt(session, index)}"
        if session.state == DialogueState.AWAITING_CONFIRMATION and session.last_predicted_option:
            message += f' Earlier I understood "{session.last_predicted_option}". Is that right?'

        return _Reply(message, ReplyAction.RE_ASK, self._debug_for(classification, source=source))

    def _handle_submit(self, session: Session, command: UserTurn, utterance: str) -> _Reply:
        summary = generate_summary(session.responses, session.questions)
        debug = {'response_count': len(session.responses)}

        if self.archive is not None:
            debug['archive_path'] = self.archive.save_submission(
                session_id=session.id,
                language=session.language,
                responses=session.responses_as_dict(),
                summary=summary
            )

        session.state = DialogueState.SUBMITTED
        logger.info(f"[{session.id}] Submitted {len(session.responses)} responses")
        return _Reply(summary, ReplyAction.SUBMITTED, debug)
