"""
Summary Generator - Human-readable summary of collected responses

Deterministic text only (no LLM call): the summary is read back to the user
at submission time and must list every stored answer verbatim.
"""

import logging
from typing import Dict, List

from questionnaire.contracts import QuestionSnapshot, ResponseEntry

logger = logging.getLogger(__name__)

SUMMARY_HEADER = "Thank you for completing the questionnaire. Here is a summary of your responses:"
EMPTY_SUMMARY = "Thank you. No responses were recorded for this questionnaire."


def order_responses(responses: Dict[str, ResponseEntry],
                    questions: List[QuestionSnapshot]) -> List[ResponseEntry]:
    """
    Responses in questionnaire order.

    Answers to questions that were later dropped from the session keep
    their place after the remaining ones, in the order they were recorded.
    """
    ordered = [responses[q.id] for q in questions if q.id in responses]
    known_ids = {q.id for q in questions}
    ordered.extend(entry for qid, entry in responses.items() if qid not in known_ids)
    return ordered


def generate_summary(responses: Dict[str, ResponseEntry],
                     questions: List[QuestionSnapshot]) -> str:
    """
    Compose the submission summary

    Args:
        responses: Stored responses keyed by question id
        questions: Session questions (for ordering)

    Returns:
        str: Multi-line summary, one numbered question/answer pair per entry
    """
    entries = order_responses(responses, questions)
    if not entries:
        return EMPTY_SUMMARY

    lines = [SUMMARY_HEADER]
    for number, entry in enumerate(entries, start=1):
        lines.append(f"{number}. {entry.question} - {entry.answer}")

    logger.debug(f"Generated summary with {len(entries)} entries")
    return "\n".join(lines)
