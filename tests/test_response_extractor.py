"""
Unit tests for Response Extractor

Covers each recovery stage and the None contract for unusable output.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from questionnaire.core.response_extractor import extract_json, extract_decision


# ========================
# extract_json
# ========================

def test_fenced_json_block():
    """Fenced ```json block is decoded"""
    text = 'Here is my answer:\n```json\n{"action": "clarify", "assistantMessage": "Could you say more?"}\n```'

    assert extract_json(text) == {'action': 'clarify', 'assistantMessage': 'Could you say more?'}

    print("✓ Fenced block test passed")


def test_bare_fence_without_language_tag():
    text = '```\n{"action": "complete"}\n```'

    assert extract_json(text) == {'action': 'complete'}


def test_balanced_braces_with_chatter():
    """Leading and trailing text around the object is ignored"""
    text = 'Sure thing! {"action": "ask_question", "confirmedAnswer": "Often"} Let me know if you need more.'

    assert extract_json(text) == {'action': 'ask_question', 'confirmedAnswer': 'Often'}

    print("✓ Balanced braces test passed")


def test_braces_inside_strings_do_not_end_object():
    text = 'Output: {"assistantMessage": "Use {curly} braces } freely", "action": "clarify"} trailing }'

    result = extract_json(text)

    assert result == {'assistantMessage': 'Use {curly} braces } freely', 'action': 'clarify'}


def test_escaped_quote_inside_string():
    text = 'x {"assistantMessage": "She said \\"hi\\" {", "action": "clarify"} y'

    result = extract_json(text)

    assert result['assistantMessage'] == 'She said "hi" {'
    assert result['action'] == 'clarify'


def test_nested_object():
    text = 'prefix {"action": "complete", "meta": {"depth": 2}} suffix'

    assert extract_json(text) == {'action': 'complete', 'meta': {'depth': 2}}


def test_whole_text_json():
    assert extract_json('  {"action": "confirm"}  ') == {'action': 'confirm'}


def test_fence_with_invalid_json_falls_back_to_braces():
    """A broken fenced block does not stop later stages"""
    text = '```json\nnot json at all\n```\nActually: {"action": "deny"}'

    assert extract_json(text) == {'action': 'deny'}


def test_plain_text_returns_none():
    assert extract_json("I'm not sure what you mean, could you repeat?") is None

    print("✓ Plain text test passed")


def test_unbalanced_object_returns_none():
    assert extract_json('{"action": "clarify", "assistantMessage": "cut off') is None


def test_non_object_json_returns_none():
    """Arrays and scalars are not decision objects"""
    assert extract_json('["clarify"]') is None
    assert extract_json('42') is None
    assert extract_json('"complete"') is None


def test_empty_and_non_string_input():
    assert extract_json("") is None
    assert extract_json("   ") is None
    assert extract_json(None) is None


# ========================
# extract_decision
# ========================

def test_decision_fields_mapped():
    text = ('{"assistantMessage": "Did you mean Often?", "action": "clarify_and_confirm", '
            '"questionId": 3, "predictedOption": "Often", "currentQuestionIndex": 2}')

    decision = extract_decision(text)

    assert decision.assistant_message == "Did you mean Often?"
    assert decision.action == "clarify_and_confirm"
    assert decision.question_id == "3"
    assert decision.predicted_option == "Often"
    assert decision.confirmed_answer is None
    assert decision.current_question_index == 2

    print("✓ Decision mapping test passed")


def test_decision_array_values_collapsed():
    """Array-valued assistantMessage/action use their first element"""
    text = '{"assistantMessage": ["Hello!", "ignored"], "action": ["ask_readiness"]}'

    decision = extract_decision(text)

    assert decision.assistant_message == "Hello!"
    assert decision.action == "ask_readiness"


def test_decision_empty_strings_become_none():
    decision = extract_decision('{"action": "", "predictedOption": "  ", "confirmedAnswer": ""}')

    assert decision.action is None
    assert decision.predicted_option is None
    assert decision.confirmed_answer is None
    assert decision.assistant_message == ""


def test_decision_rejects_boolean_index():
    decision = extract_decision('{"action": "clarify", "currentQuestionIndex": true}')

    assert decision.current_question_index is None


def test_decision_none_for_unparsable_text():
    assert extract_decision("no json here") is None


if __name__ == "__main__":
    test_fenced_json_block()
    test_balanced_braces_with_chatter()
    test_plain_text_returns_none()
    test_decision_fields_mapped()
    print("\nAll response extractor tests passed!")
