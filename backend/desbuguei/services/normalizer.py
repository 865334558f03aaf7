"""Identifier normalization — folds free text into a canonical term id."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize(text: str) -> str:
    """Turn a user query into a lookup key.

    "  Ação-Já!! " -> "acao-ja", "CI/CD" -> "ci-cd", "Node.js" -> "node-js".
    Returns "" when nothing alphanumeric survives; callers treat that as invalid.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    # NFKD can produce uppercase compatibility forms (e.g. "Ⅻ" -> "XII")
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")
