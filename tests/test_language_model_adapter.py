"""
Unit tests for Language Model Adapter and Prompt Builder

Tests use a scripted generation client; no model is loaded.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import time

import pytest

from questionnaire.contracts import HistoryTurn, QuestionSnapshot
from questionnaire.core.language_model_adapter import LanguageModelAdapter
from questionnaire.errors import GenerationUnavailable
from questionnaire.utils import prompt_builder
from questionnaire.utils.prompt_builder import PromptKind, SYSTEM_PROMPT


# ========================
# Mock Modules
# ========================

class MockGenerationClient:
    """Returns scripted outputs and records every prompt"""

    def __init__(self, outputs=None):
        self.outputs = list(outputs or [])
        self.calls = []

    def generate(self, prompt, system_prompt=None):
        self.calls.append({'prompt': prompt, 'system_prompt': system_prompt})
        if not self.outputs:
            return '{"assistantMessage": "ok", "action": "clarify"}'
        output = self.outputs.pop(0)
        if isinstance(output, Exception):
            raise output
        return output


class SlowGenerationClient:
    def generate(self, prompt, system_prompt=None):
        time.sleep(0.5)
        return '{"action": "clarify"}'


CHOICE_QUESTION = QuestionSnapshot(
    id="focus-en", text="How often do you lose focus?", type="choice",
    options=("Never", "Rarely", "Often")
)
FREETEXT_QUESTION = QuestionSnapshot(id="notes-en", text="Anything else to share?")


# ========================
# Adapter
# ========================

def test_readiness_intro_decodes_decision():
    client = MockGenerationClient(['```json\n{"assistantMessage": "Hello! Ready?", "action": "ask_readiness"}\n```'])
    adapter = LanguageModelAdapter(client, timeout_seconds=None)

    classification = adapter.readiness_intro("en", 5)

    assert classification.kind == PromptKind.READINESS_INTRO
    assert classification.parsed
    assert classification.decision.assistant_message == "Hello! Ready?"
    assert client.calls[0]['system_prompt'] == SYSTEM_PROMPT
    assert "5 questions" in client.calls[0]['prompt']

    print("✓ Readiness intro test passed")


def test_unparsable_output_is_not_an_error():
    client = MockGenerationClient(["Sure, let's get started!"])
    adapter = LanguageModelAdapter(client)

    classification = adapter.readiness_confirmation("yes please", "en")

    assert classification.decision is None
    assert not classification.parsed
    assert classification.raw_output == "Sure, let's get started!"


def test_unparsable_output_is_named_in_logs(caplog):
    adapter = LanguageModelAdapter(MockGenerationClient(["no json here"]))

    with caplog.at_level('WARNING'):
        classification = adapter.readiness_intro("en", 2)

    assert classification.output_error == "MalformedGenerationOutput"
    assert any("MalformedGenerationOutput" in r.message for r in caplog.records)
    assert adapter.readiness_intro("en", 2).output_error is None


def test_explanation_prompt_contents():
    question = QuestionSnapshot(
        id="focus-en", text="How often do you lose focus?", type="choice",
        options=("Never", "Often"), explanation="Noise or movement makes it hard to concentrate."
    )
    client = MockGenerationClient(['{"assistantMessage": "It is about distractions.", "action": "re_ask"}'])
    adapter = LanguageModelAdapter(client)

    classification = adapter.explanation(question, 2)

    prompt = client.calls[0]['prompt']
    assert classification.kind == PromptKind.EXPLANATION
    assert classification.decision.assistant_message == "It is about distractions."
    assert "Noise or movement makes it hard to concentrate." in prompt
    assert '"currentQuestionIndex": 2' in prompt
    assert prompt.endswith(prompt_builder.JSON_ONLY_INSTRUCTION)


def test_client_exception_becomes_generation_unavailable():
    client = MockGenerationClient([ConnectionError("network down")])
    adapter = LanguageModelAdapter(client)

    with pytest.raises(GenerationUnavailable):
        adapter.answer_classification(CHOICE_QUESTION, 0, 1, "often")

    print("✓ Generation failure test passed")


def test_timeout_becomes_generation_unavailable():
    adapter = LanguageModelAdapter(SlowGenerationClient(), timeout_seconds=0.05)

    with pytest.raises(GenerationUnavailable):
        adapter.readiness_intro("en", 1)


def test_non_text_output_becomes_generation_unavailable():
    client = MockGenerationClient([None])
    adapter = LanguageModelAdapter(client)

    with pytest.raises(GenerationUnavailable):
        adapter.readiness_intro("en", 1)


def test_vague_confirmation_prompt_contents():
    client = MockGenerationClient(['{"action": "confirm", "confirmedAnswer": "Often"}'])
    adapter = LanguageModelAdapter(client)

    classification = adapter.vague_confirmation(CHOICE_QUESTION, "Often", "yes")

    prompt = client.calls[0]['prompt']
    assert '"Often"' in prompt
    assert "How often do you lose focus?" in prompt
    assert classification.decision.action == "confirm"
    assert classification.decision.confirmed_answer == "Often"


def test_requires_generate_method():
    with pytest.raises(TypeError):
        LanguageModelAdapter(object())


# ========================
# Prompt Builder
# ========================

def test_answer_prompt_choice_lists_options():
    prompt = prompt_builder.build_answer_classification_prompt(CHOICE_QUESTION, 0, 3, "kind of often")

    assert '"Never", "Rarely", "Often"' in prompt
    assert "clarify_and_confirm" in prompt
    assert '"action" to "ask_question"' in prompt
    assert '"kind of often"' in prompt
    assert prompt.endswith(prompt_builder.JSON_ONLY_INSTRUCTION)


def test_answer_prompt_last_question_uses_complete():
    prompt = prompt_builder.build_answer_classification_prompt(CHOICE_QUESTION, 2, 3, "never")

    assert '"action" to "complete"' in prompt
    assert "number 3 of 3" in prompt


def test_answer_prompt_freetext_has_no_confirm_branch():
    prompt = prompt_builder.build_answer_classification_prompt(FREETEXT_QUESTION, 0, 2, "I sleep badly")

    assert "clarify_and_confirm" not in prompt
    assert "the user's own words" in prompt


def test_answer_prompt_includes_recent_history_only():
    history = [HistoryTurn("assistant", f"message {i}") for i in range(10)]

    prompt = prompt_builder.build_answer_classification_prompt(FREETEXT_QUESTION, 0, 1, "fine", history)

    assert "message 9" in prompt
    assert "message 6" in prompt
    assert "message 5" not in prompt


def test_prompt_escapes_user_text():
    """Quotes in the utterance cannot break out of the prompt's quoting"""
    prompt = prompt_builder.build_readiness_confirmation_prompt('say "yes"', "en")

    assert '"say \\"yes\\""' in prompt


def test_template_keys_cover_decision_fields():
    keys = prompt_builder.list_template_keys(PromptKind.ANSWER_CLASSIFICATION)

    assert "predictedOption" in keys
    assert "confirmedAnswer" in keys
    assert prompt_builder.list_template_keys(PromptKind.VAGUE_CONFIRMATION) == [
        "assistantMessage", "action", "confirmedAnswer"
    ]
