"""Text cleanup rules for bank transaction descriptions.

Each derivation is an ordered list of ``(pattern, replacement)`` rules applied
in sequence. The order matters: later rules expect earlier ones to have
stripped their noise already (e.g. whitespace is collapsed last).
"""

import re

from . import constants

Rule = tuple[re.Pattern, str]

_WHITESPACE = re.compile(r"\s+")
_REFERENCE_CODE = re.compile(r"\b[A-Z]{1,3}\d+[A-Z]?\b", re.IGNORECASE)

# Grouping key: reference codes such as JT055236A or RN12345B, then leftover
# numbers and single letters
GROUPING_RULES: list[Rule] = [
    (_REFERENCE_CODE, ""),
    (re.compile(r"\b\d+\b"), ""),
    (re.compile(r"\b[A-Z]\b", re.IGNORECASE), ""),
    (_WHITESPACE, " "),
]

# Names drop reference codes too, so "SALARY JT055236A" becomes "Salary"
NAME_RULES: list[Rule] = [
    (_REFERENCE_CODE, ""),
    (re.compile(r"\bSALARY\b", re.IGNORECASE), "Salary"),
    (re.compile(r"\bPAYROLL\b", re.IGNORECASE), "Payroll"),
    (re.compile(r"\bDEPOSIT\b", re.IGNORECASE), ""),
    (re.compile(r"\bDIRECT DEPOSIT\b", re.IGNORECASE), ""),
    (re.compile(r"\bTRANSFER FROM\b", re.IGNORECASE), ""),
    (re.compile(r"\bPAYMENT FROM\b", re.IGNORECASE), ""),
    (re.compile(r"\bCREDIT\b", re.IGNORECASE), ""),
    (re.compile(r"\b(LTD|LIMITED|PLC|INC|LLC|CORP)\b", re.IGNORECASE), ""),
    (_WHITESPACE, " "),
]

SOURCE_RULES: list[Rule] = [
    (
        re.compile(
            r"\b(SALARY|PAYROLL|DEPOSIT|DIRECT|TRANSFER|FROM|PAYMENT|CREDIT)\b",
            re.IGNORECASE,
        ),
        "",
    ),
    (re.compile(r"\d+"), ""),
    (_WHITESPACE, " "),
]

MATCH_PATTERN_RULES: list[Rule] = [
    (re.compile(r"\d+"), ""),
    (_WHITESPACE, " "),
]


def apply_rules(text: str, rules: list[Rule]) -> str:
    """Apply ``rules`` to ``text`` in order."""
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def title_case(text: str) -> str:
    """Upper-case the first letter of each space-separated word.

    Unlike ``str.title`` this leaves letters after apostrophes and digits alone.
    """
    return " ".join(word[:1].upper() + word[1:] for word in text.lower().split(" "))


def normalize_description(description: str) -> str:
    """Grouping key for a description: reference codes stripped, lower-cased."""
    return apply_rules(description, GROUPING_RULES).strip().lower()


def suggest_name(description: str) -> str:
    """Clean display name, e.g. ``"ACME LTD PAYROLL"`` -> ``"Acme Payroll"``."""
    return title_case(apply_rules(description, NAME_RULES)).strip()


def suggest_source(description: str) -> str:
    """Likely employer or payer, or ``"Unknown Source"`` when nothing remains."""
    source = apply_rules(description, SOURCE_RULES).strip()
    if not source:
        return constants.UNKNOWN_SOURCE
    return title_case(source)


def match_pattern(description: str) -> str:
    """Short fragment for matching future transactions: first three words."""
    cleaned = apply_rules(description, MATCH_PATTERN_RULES).strip()
    words = [w for w in cleaned.split(" ") if len(w) >= constants.MATCH_PATTERN_MIN_WORD_LENGTH]
    return " ".join(words[: constants.MATCH_PATTERN_MAX_WORDS])


def slugify(text: str) -> str:
    """Convert text to a bill id, e.g. ``"Acme Payroll"`` -> ``"acme-payroll"``."""
    slug = _WHITESPACE.sub("-", text.strip().lower())
    slug = re.sub(r"[^a-z0-9\-]", "", slug)
    return re.sub(r"-+", "-", slug).strip("-")
