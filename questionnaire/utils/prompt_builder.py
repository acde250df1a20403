"""
Prompt Builder - Construct classification prompts for each dialogue context

Responsibilities:
- Render the prompt templates (readiness intro, readiness confirmation,
  answer classification, vague-answer confirmation, question explanation)
- Document the exact JSON key set each template asks for
- Render recent conversation history as context

NOT responsible for:
- LLM calls
- Parsing model output
- Dialogue state

Design principles:
- Every template ends with the same strict JSON-only instruction
- Key sets below are the contract with the Response Extractor / Decision
- Plain text only; model-specific formatting is applied by the client
"""

import json
import logging
from enum import Enum
from typing import List, Sequence

from questionnaire.contracts import HistoryTurn, QuestionSnapshot

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an empathetic assistant guiding a user through a questionnaire "
    "by voice or chat. Keep messages short, warm and clear. You always reply "
    "with a single JSON object and nothing else."
)

JSON_ONLY_INSTRUCTION = (
    "Strictly output only the JSON object. Do not include any other text outside the JSON."
)

HISTORY_WINDOW = 4


class PromptKind(str, Enum):
    """Prompt template identifiers"""
    READINESS_INTRO = "readiness_intro"
    READINESS_CONFIRMATION = "readiness_confirmation"
    ANSWER_CLASSIFICATION = "answer_classification"
    VAGUE_CONFIRMATION = "vague_confirmation"
    EXPLANATION = "explanation"


# JSON keys each template asks for (documentation and test contract)
TEMPLATE_KEYS = {
    PromptKind.READINESS_INTRO: ("assistantMessage", "action", "questionId", "currentQuestionIndex"),
    PromptKind.READINESS_CONFIRMATION: ("assistantMessage", "action", "questionId", "currentQuestionIndex"),
    PromptKind.ANSWER_CLASSIFICATION: (
        "assistantMessage", "action", "questionId", "currentQuestionIndex",
        "predictedOption", "confirmedAnswer"
    ),
    PromptKind.VAGUE_CONFIRMATION: ("assistantMessage", "action", "confirmedAnswer"),
    PromptKind.EXPLANATION: ("assistantMessage", "action", "questionId", "currentQuestionIndex"),
}


def _format_history(history: Sequence[HistoryTurn], window: int = HISTORY_WINDOW) -> str:
    recent = list(history)[-window:]
    if not recent:
        return ""
    lines = "\n".join(f"{turn.role}: {turn.text}" for turn in recent)
    return f"\nRecent conversation history:\n{lines}\n"


def _format_options(options: Sequence[str]) -> str:
    return ", ".join(f'"{opt}"' for opt in options)


def build_readiness_intro_prompt(language: str, total_questions: int) -> str:
    """
    Greeting that introduces the questionnaire and asks if the user is ready.

    Keys: assistantMessage, action ("ask_readiness"), questionId (null),
    currentQuestionIndex (0)
    """
    return f"""The user has just opened the questionnaire.
Reply in the language with code "{language}".
Introduce yourself warmly and briefly explain the purpose of the questionnaire: it helps understand daily experiences, and honest answers lead to better support.
The questionnaire has {total_questions} questions.
Then ask the user if they are ready to begin. Do NOT ask the first question yet.

Provide your response as a JSON object with:
- "assistantMessage": string, the full introduction and readiness question
- "action": "ask_readiness"
- "questionId": null
- "currentQuestionIndex": 0

{JSON_ONLY_INSTRUCTION}"""


def build_readiness_confirmation_prompt(utterance: str, language: str) -> str:
    """
    Classify whether the user is ready to start.

    Keys: assistantMessage, action ("confirm_readiness" | "clarify"),
    questionId (null), currentQuestionIndex (0)
    """
    return f"""You previously asked the user if they are ready to start the questionnaire.
The user's response was: {json.dumps(utterance, ensure_ascii=False)}
Reply in the language with code "{language}".

Determine if the response indicates they are ready (e.g. "yes", "I am", "ready", "start").
If they are ready:
- Set "action" to "confirm_readiness".
- Provide a short, positive "assistantMessage" acknowledging they are ready. Do not ask any question.
If they are not ready or the response is unclear:
- Set "action" to "clarify".
- Ask them again, kindly, if they are ready to begin.

Provide your response as a JSON object with:
- "assistantMessage": string
- "action": "confirm_readiness" or "clarify"
- "questionId": null
- "currentQuestionIndex": 0

{JSON_ONLY_INSTRUCTION}"""


def build_answer_classification_prompt(
    question: QuestionSnapshot,
    question_index: int,
    total_questions: int,
    utterance: str,
    history: Sequence[HistoryTurn] = ()
) -> str:
    """
    Classify the user's answer to the open question.

    Choice questions may yield: ask_question, complete, clarify_and_confirm,
    clarify, repeat_question_gemini_detected.
    Freetext questions may yield: ask_question, complete, clarify,
    repeat_question_gemini_detected.

    Keys: assistantMessage, action, questionId, currentQuestionIndex,
    predictedOption, confirmedAnswer
    """
    is_last = question_index >= total_questions - 1
    advance_action = "complete" if is_last else "ask_question"

    prompt = f"""You are guiding a user through a fixed questionnaire.
Reply in the language with code "{question.language}".
The current question (number {question_index + 1} of {total_questions}) is: {json.dumps(question.text, ensure_ascii=False)}
"""

    if question.is_choice:
        prompt += f"""The allowed answer options are: {_format_options(question.options)}
The user's response was: {json.dumps(utterance, ensure_ascii=False)}

Classify the response:
- If it clearly matches exactly one option, set "action" to "{advance_action}", set "confirmedAnswer" to that option exactly as listed, and give a short acknowledgement in "assistantMessage". Do not ask the next question yourself.
- If it plausibly but not certainly matches one option, set "action" to "clarify_and_confirm", set "predictedOption" to that option exactly as listed, and ask the user to confirm it in "assistantMessage".
- If the user asks to hear the question again, set "action" to "repeat_question_gemini_detected".
- Otherwise set "action" to "clarify" and ask them to choose one of the options.
"""
    else:
        prompt += f"""This is an open question; any relevant answer is acceptable.
The user's response was: {json.dumps(utterance, ensure_ascii=False)}

Classify the response:
- If it answers the question, set "action" to "{advance_action}", set "confirmedAnswer" to the answer in the user's own words, and give a short acknowledgement in "assistantMessage". Do not ask the next question yourself.
- If the user asks to hear the question again, set "action" to "repeat_question_gemini_detected".
- If it does not answer the question, set "action" to "clarify" and kindly ask them to answer it.
"""

    prompt += _format_history(history)
    prompt += f"""
Provide your response as a JSON object with:
- "assistantMessage": string
- "action": string, one of the actions above
- "questionId": {json.dumps(question.id)}
- "currentQuestionIndex": {question_index}
- "predictedOption": string or null
- "confirmedAnswer": string or null

{JSON_ONLY_INSTRUCTION}"""
    return prompt


def build_vague_confirmation_prompt(
    question: QuestionSnapshot,
    predicted_option: str,
    utterance: str
) -> str:
    """
    Classify the user's reply to "did you mean <predicted option>?".

    Keys: assistantMessage, action ("confirm" | "deny" | "new_option" |
    "repeat_question"), confirmedAnswer
    """
    return f"""You asked the user to confirm an inferred answer.
Reply in the language with code "{question.language}".
Question: {json.dumps(question.text, ensure_ascii=False)}
Allowed options: {_format_options(question.options)}
Inferred option: {json.dumps(predicted_option, ensure_ascii=False)}
The user's reply was: {json.dumps(utterance, ensure_ascii=False)}

Classify the reply:
- "confirm": the user agrees with the inferred option. Set "confirmedAnswer" to the inferred option.
- "new_option": the user names a different option. Set "confirmedAnswer" to that option exactly as listed.
- "deny": the user disagrees but gives no other option.
- "repeat_question": the user asks to hear the question again.

Provide your response as a JSON object with:
- "assistantMessage": string, a short acknowledgement
- "action": "confirm", "deny", "new_option" or "repeat_question"
- "confirmedAnswer": string or null

{JSON_ONLY_INSTRUCTION}"""


def build_explanation_prompt(question: QuestionSnapshot, question_index: int) -> str:
    """
    Explain the open question in plain words before it is asked again.

    The engine reads the question out after the explanation, so the model
    must not repeat it.

    Keys: assistantMessage, action ("re_ask"), questionId, currentQuestionIndex
    """
    reference = question.explanation or "(none provided)"
    return f"""The user asked what the current question means.
Reply in the language with code "{question.language}".
Question: {json.dumps(question.text, ensure_ascii=False)}
Reference explanation: {json.dumps(reference, ensure_ascii=False)}

Explain the question in one or two short, simple sentences, staying close to the reference explanation.
Do NOT repeat the question itself and do NOT suggest an answer.

Provide your response as a JSON object with:
- "assistantMessage": string, the explanation only
- "action": "re_ask"
- "questionId": {json.dumps(question.id)}
- "currentQuestionIndex": {question_index}

{JSON_ONLY_INSTRUCTION}"""


def list_template_keys(kind: PromptKind) -> List[str]:
    return list(TEMPLATE_KEYS[kind])
