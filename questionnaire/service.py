"""
Service wiring

Builds the Dialogue Engine and its collaborators from Settings. Used by the
Flask app and the console harness; tests build engines directly with mock
collaborators.
"""

import logging

from questionnaire.core.approval_gate import ApprovalGate
from questionnaire.core.dialogue_engine import DialogueEngine
from questionnaire.core.language_model_adapter import LanguageModelAdapter
from questionnaire.core.question_repository import InMemoryQuestionRepository
from questionnaire.core.question_resolver import QuestionSetResolver
from questionnaire.core.session_store import SessionStore
from questionnaire.persistence import SubmissionArchive
from questionnaire.settings import settings as default_settings

logger = logging.getLogger(__name__)

BACKEND_GEMINI = "gemini"
BACKEND_HUGGINGFACE = "huggingface"


def build_generation_client(config):
    """
    Language Generation Service for the configured backend

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = config.generation_backend.strip().lower()

    if backend == BACKEND_GEMINI:
        from questionnaire.utils.gemini_client import GeminiClient
        return GeminiClient(
            config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
            timeout=config.generation_timeout_seconds
        )

    if backend == BACKEND_HUGGINGFACE:
        # torch/transformers are only imported when a local model is requested
        from questionnaire.utils.hf_client import HuggingFaceClient
        logger.info("Initializing HuggingFace model (this may take ~30 seconds)...")
        return HuggingFaceClient(
            model_name=config.hf_model_name,
            load_in_4bit=config.hf_load_in_4bit,
            device=config.hf_device
        )

    raise ValueError(f"Unknown generation backend: {config.generation_backend!r}")


def build_engine(config=None, generation_client=None, repository=None) -> DialogueEngine:
    """
    Wire a DialogueEngine

    Args:
        config: Settings instance (module settings if None)
        generation_client: Overrides the configured backend
        repository: Overrides the JSON question bank at config.questions_path
    """
    config = config or default_settings

    if repository is None:
        repository = InMemoryQuestionRepository.from_json_file(config.questions_path)
    if generation_client is None:
        generation_client = build_generation_client(config)

    archive = SubmissionArchive(config.submissions_dir) if config.submissions_dir else None

    engine = DialogueEngine(
        session_store=SessionStore(ttl_seconds=config.session_ttl_seconds),
        question_resolver=QuestionSetResolver(
            repository,
            allow_ungrouped_fallback=config.allow_ungrouped_fallback,
            timeout_seconds=config.repository_timeout_seconds
        ),
        approval_gate=ApprovalGate(repository, timeout_seconds=config.repository_timeout_seconds),
        language_model=LanguageModelAdapter(
            generation_client,
            timeout_seconds=config.generation_timeout_seconds
        ),
        submission_archive=archive
    )
    logger.info(f"Engine ready (backend={config.generation_backend}, archive={'on' if archive else 'off'})")
    return engine
