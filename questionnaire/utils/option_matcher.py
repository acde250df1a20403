"""
Option Matcher - Deterministic mapping of utterances onto choice options

Used when the model output cannot be decoded, and to validate option names
the model returns.

Matching order:
1. Exact option text (case/whitespace-insensitive)
2. Frequency-scale synonyms, only for options that carry those labels
   ("not often" must read as Rarely, not as Often)
3. Option text appearing as whole words in the utterance (longest option
   wins, so "Very Often" beats "Often")
"""

import re
import unicodedata
from typing import Optional, Sequence

# Frequency-scale synonyms keyed by lower-case option label
FREQUENCY_SYNONYMS = {
    "very often": ("almost always", "all the time", "constantly", "every day", "very much"),
    "often": ("frequently", "a lot", "many times", "usually"),
    "sometimes": ("occasionally", "once in a while", "now and then", "a bit", "at times"),
    "rarely": ("hardly ever", "seldom", "not often", "infrequently", "almost never"),
    "never": ("not at all", "no time", "not once"),
}


def normalize_text(text: str) -> str:
    """Lower-case, drop punctuation, collapse whitespace"""
    text = unicodedata.normalize("NFKC", text or "").lower().strip()
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _contains_phrase(haystack: str, phrase: str) -> bool:
    if not phrase:
        return False
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", haystack) is not None


def canonical_option(value: Optional[str], options: Sequence[str]) -> Optional[str]:
    """
    Return the option exactly as listed if value names it, else None

    Examples:
        >>> canonical_option(" often ", ["Never", "Often"])
        'Often'
        >>> canonical_option("maybe", ["Never", "Often"]) is None
        True
    """
    if not value:
        return None
    normalized = normalize_text(value)
    for option in options:
        if normalize_text(option) == normalized:
            return option
    return None


def match_option(utterance: str, options: Sequence[str]) -> Optional[str]:
    """
    Best-effort option for a free-form utterance, or None if nothing matches

    Examples:
        >>> match_option("kind of often I guess", ["Never", "Rarely", "Often"])
        'Often'
        >>> match_option("hardly ever", ["Never", "Rarely", "Often"])
        'Rarely'
    """
    if not utterance or not options:
        return None

    exact = canonical_option(utterance, options)
    if exact is not None:
        return exact

    text = normalize_text(utterance)

    # Longest option first so multi-word labels win over their suffixes
    by_length = sorted(options, key=lambda opt: len(normalize_text(opt)), reverse=True)

    # Synonyms are checked before plain labels: "not often" must not read as "Often"
    for option in by_length:
        for synonym in FREQUENCY_SYNONYMS.get(normalize_text(option), ()):
            if _contains_phrase(text, synonym):
                return option

    for option in by_length:
        if _contains_phrase(text, normalize_text(option)):
            return option

    return None
