"""
Language Model Adapter - Prompt, call and decode for each dialogue context

Responsibilities:
- Build the prompt for a dialogue context (via prompt_builder)
- Invoke the Language Generation Service once, bounded by a timeout
- Decode the output with the Response Extractor
- Report generation failures as GenerationUnavailable

Design principles:
- One blocking call per classification need, no retries
- Decoding failures are NOT errors: decision is None and the Dialogue
  Engine applies its deterministic fallback
- Stateless apart from configuration; safe to share across sessions
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from questionnaire.contracts import Decision, HistoryTurn, QuestionSnapshot
from questionnaire.core.response_extractor import extract_decision
from questionnaire.errors import GenerationUnavailable, MalformedGenerationOutput
from questionnaire.utils import prompt_builder
from questionnaire.utils.helpers import call_with_timeout
from questionnaire.utils.prompt_builder import PromptKind, SYSTEM_PROMPT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    """
    Result of one classification call

    Attributes:
        kind: Prompt template used
        decision: Decoded decision, None if output was unparsable
        raw_output: Model output as returned by the service
        latency_ms: Wall time of the generation call
    """
    kind: PromptKind
    decision: Optional[Decision]
    raw_output: str
    latency_ms: float

    @property
    def parsed(self) -> bool:
        return self.decision is not None

    @property
    def output_error(self) -> Optional[str]:
        """Name of the decoding failure, None when the output parsed"""
        return None if self.parsed else MalformedGenerationOutput.__name__


class LanguageModelAdapter:
    """Bridges dialogue contexts to the Language Generation Service"""

    def __init__(self, generation_client, timeout_seconds: Optional[float] = 30.0,
                 system_prompt: str = SYSTEM_PROMPT) -> None:
        """
        Initialize adapter with a generation client

        Args:
            generation_client: Object with generate(prompt, system_prompt=None) -> str
            timeout_seconds: Upper bound for each generation call
            system_prompt: System instruction sent with every prompt

        Raises:
            TypeError: If client lacks a callable generate()
        """
        if not callable(getattr(generation_client, 'generate', None)):
            raise TypeError("generation_client must have callable generate() method")

        self.client = generation_client
        self.timeout_seconds = timeout_seconds
        self.system_prompt = system_prompt

        logger.info(f"Language Model Adapter initialized (timeout={timeout_seconds}s)")

    # =========================================================================
    # Public API
    # =========================================================================

    def readiness_intro(self, language: str, total_questions: int) -> Classification:
        prompt = prompt_builder.build_readiness_intro_prompt(language, total_questions)
        return self._classify(PromptKind.READINESS_INTRO, prompt)

    def readiness_confirmation(self, utterance: str, language: str) -> Classification:
        prompt = prompt_builder.build_readiness_confirmation_prompt(utterance, language)
        return self._classify(PromptKind.READINESS_CONFIRMATION, prompt)

    def answer_classification(
        self,
        question: QuestionSnapshot,
        question_index: int,
        total_questions: int,
        utterance: str,
        history: Sequence[HistoryTurn] = ()
    ) -> Classification:
        prompt = prompt_builder.build_answer_classification_prompt(
            question=question,
            question_index=question_index,
            total_questions=total_questions,
            utterance=utterance,
            history=history
        )
        return self._classify(PromptKind.ANSWER_CLASSIFICATION, prompt)

    def vague_confirmation(self, question: QuestionSnapshot, predicted_option: str,
                           utterance: str) -> Classification:
        prompt = prompt_builder.build_vague_confirmation_prompt(question, predicted_option, utterance)
        return self._classify(PromptKind.VAGUE_CONFIRMATION, prompt)

    def explanation(self, question: QuestionSnapshot, question_index: int) -> Classification:
        prompt = prompt_builder.build_explanation_prompt(question, question_index)
        return self._classify(PromptKind.EXPLANATION, prompt)

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _classify(self, kind: PromptKind, prompt: str) -> Classification:
        """
        Call the service once and decode the output

        Raises:
            GenerationUnavailable: If the call fails, times out, or returns non-text
        """
        start_time = time.time()

        try:
            raw_output = call_with_timeout(
                self.client.generate,
                self.timeout_seconds,
                prompt,
                system_prompt=self.system_prompt
            )
        except Exception as e:
            logger.error(f"[{kind.value}] Generation failed: {type(e).__name__} - {e}")
            raise GenerationUnavailable(f"Language generation failed: {type(e).__name__}") from e

        elapsed_ms = (time.time() - start_time) * 1000

        if not isinstance(raw_output, str):
            logger.error(f"[{kind.value}] Generation returned {type(raw_output).__name__}, expected str")
            raise GenerationUnavailable("Language generation returned no text")

        logger.debug(f"[{kind.value}] Raw output ({elapsed_ms:.0f}ms): {raw_output[:200]}")

        decision = extract_decision(raw_output)
        if decision is None:
            logger.warning(f"[{kind.value}] {MalformedGenerationOutput.__name__}: deterministic fallback applies")

        return Classification(
            kind=kind,
            decision=decision,
            raw_output=raw_output,
            latency_ms=elapsed_ms
        )
