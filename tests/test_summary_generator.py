"""
Unit tests for Summary Generator and Submission Archive
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from questionnaire.contracts import QuestionSnapshot, ResponseEntry
from questionnaire.core.summary_generator import (
    EMPTY_SUMMARY,
    SUMMARY_HEADER,
    generate_summary,
    order_responses,
)
from questionnaire.persistence import SubmissionArchive
from questionnaire.utils import helpers

QUESTIONS = [
    QuestionSnapshot(id="q1", text="How are you?"),
    QuestionSnapshot(id="q2", text="How often do you rest?", type="choice", options=("Never", "Often")),
]


def test_summary_lists_answers_in_question_order():
    responses = {
        "q2": ResponseEntry("How often do you rest?", "Often", "quite often"),
        "q1": ResponseEntry("How are you?", "Good", "good thanks"),
    }

    summary = generate_summary(responses, QUESTIONS)

    assert summary.splitlines() == [
        SUMMARY_HEADER,
        "1. How are you? - Good",
        "2. How often do you rest? - Often",
    ]

    print("✓ Summary order test passed")


def test_summary_keeps_answers_to_dropped_questions():
    responses = {
        "gone": ResponseEntry("Removed question?", "Yes", "yes"),
        "q1": ResponseEntry("How are you?", "Good", "good"),
    }

    ordered = order_responses(responses, QUESTIONS)

    assert [entry.question for entry in ordered] == ["How are you?", "Removed question?"]


def test_empty_summary():
    assert generate_summary({}, QUESTIONS) == EMPTY_SUMMARY


def test_archive_round_trip(tmp_path):
    archive = SubmissionArchive(str(tmp_path / "submissions"))

    path = archive.save_submission("abc", "en", {"q1": {"question": "How are you?", "answer": "Good",
                                                       "rawTranscript": "good"}}, "summary text")

    filename = os.path.basename(path)
    assert archive.list_submissions() == [filename]
    saved = archive.load_submission(filename)
    assert saved['session_id'] == "abc"
    assert saved['language'] == "en"
    assert saved['summary'] == "summary text"
    assert 'submitted_at' in saved


def test_archive_never_overwrites(tmp_path, monkeypatch):
    archive = SubmissionArchive(str(tmp_path))
    monkeypatch.setattr("questionnaire.persistence.generate_submission_filename",
                        lambda: "submission_fixed.json")

    archive.save_submission("a", "en", {}, "first")

    with pytest.raises(FileExistsError):
        archive.save_submission("b", "en", {}, "second")
    assert archive.load_submission("submission_fixed.json")['summary'] == "first"


def test_missing_submission(tmp_path):
    assert SubmissionArchive(str(tmp_path)).load_submission("nope.json") is None


def test_submission_filename_format():
    filename = helpers.generate_submission_filename()

    assert filename.startswith("submission_")
    assert filename.endswith(".json")
    assert len(helpers.generate_session_id()) == 32
    assert len(helpers.generate_session_id(short=True)) == 8


def test_call_with_timeout():
    assert helpers.call_with_timeout(lambda x: x * 2, 1.0, 21) == 42
    assert helpers.call_with_timeout(lambda: "inline", None) == "inline"

    with pytest.raises(ValueError):
        helpers.call_with_timeout(int, 1.0, "not a number")
