"""Company-name normalization used to join CRM and support records."""

import re

CORPORATE_SUFFIXES = frozenset(
    {"inc", "incorporated", "ltd", "limited", "corp", "corporation", "co", "company", "llc", "plc"}
)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SUFFIX = re.compile(rf"\b(?:{'|'.join(sorted(CORPORATE_SUFFIXES))})\b")
_SPACES = re.compile(r"\s+")


def normalize_key(name: str) -> str:
    """
    Canonical join key for a company name.
    Lowercase, drop punctuation, remove whole-word corporate suffixes
    ("Acme Corp, Inc." and "ACME CORP" both -> "acme"), collapse whitespace.
    Idempotent.
    """
    if not name:
        return ""
    key = _NON_ALNUM.sub("", name.lower())
    key = _SUFFIX.sub(" ", key)
    return _SPACES.sub(" ", key).strip()
