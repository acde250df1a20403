"""
Unit tests for Option Matcher (keyword fallback)
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from questionnaire.utils.option_matcher import canonical_option, match_option, normalize_text

FREQUENCY = ["Never", "Rarely", "Sometimes", "Often", "Very Often"]


def test_normalize_text():
    assert normalize_text("  Very   OFTEN!! ") == "very often"
    assert normalize_text(None) == ""


def test_canonical_option_exact_only():
    assert canonical_option(" often ", FREQUENCY) == "Often"
    assert canonical_option("very often", FREQUENCY) == "Very Often"
    assert canonical_option("kind of often", FREQUENCY) is None
    assert canonical_option(None, FREQUENCY) is None


def test_exact_match():
    assert match_option("Sometimes", FREQUENCY) == "Sometimes"

    print("✓ Exact match test passed")


def test_label_inside_sentence():
    assert match_option("kind of often I guess", ["Never", "Rarely", "Often"]) == "Often"


def test_longest_label_wins():
    """'Very Often' must not be read as 'Often'"""
    assert match_option("I'd say very often, honestly", FREQUENCY) == "Very Often"

    print("✓ Longest label test passed")


def test_synonyms():
    assert match_option("hardly ever", FREQUENCY) == "Rarely"
    assert match_option("pretty much all the time", FREQUENCY) == "Very Often"
    assert match_option("once in a while", FREQUENCY) == "Sometimes"
    assert match_option("not at all", FREQUENCY) == "Never"


def test_negated_label_uses_synonym():
    assert match_option("not often really", FREQUENCY) == "Rarely"


def test_synonyms_need_matching_label():
    """Synonyms only apply to options that carry the label"""
    assert match_option("all the time", ["Yes", "No"]) is None


def test_no_match():
    assert match_option("I like turtles", FREQUENCY) is None
    assert match_option("", FREQUENCY) is None
    assert match_option("often", []) is None


def test_partial_word_does_not_match():
    assert match_option("neverland", FREQUENCY) is None


def test_non_english_labels():
    options = ["Nunca", "Raramente", "A veces", "A menudo", "Muy a menudo"]

    assert match_option("creo que a veces", options) == "A veces"
    assert match_option("muy a menudo", options) == "Muy a menudo"
