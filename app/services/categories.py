"""
Construction category (phase) ordering.

Single source of truth for "which phase comes before which". The gate
evaluator, the scheduling-block resolver and any API that sorts categories
import from here; nothing else may hold a copy of the phase table or the
typo correction.

Matching is case-insensitive and whitespace-trimmed. The historical
misspelling "Prelliminary" is folded into "Preliminary". Labels that match
no phase (including None and "Uncategorized") sort after every real phase.
"""

import re

CATEGORY_ORDER = (
    "Preliminary work",
    "Foundation",
    "Structural",
    "Interior finishes / exterior rough work",
    "Finals punches and inspections.",
    "Pre-sale completion package",
)

UNCATEGORIZED = "Uncategorized"

UNMATCHED_CATEGORY_INDEX = 999

_MISSPELLING_RE = re.compile("prelliminary", re.IGNORECASE)

_NORMALIZED_ORDER = {label.lower().strip(): idx for idx, label in enumerate(CATEGORY_ORDER)}


def normalize_category(label: str | None) -> str:
    """Return the comparison key for a category label."""
    return (label or UNCATEGORIZED).lower().strip().replace("prelliminary", "preliminary")


def category_index(label: str | None) -> int:
    """Position of the label in CATEGORY_ORDER, or UNMATCHED_CATEGORY_INDEX."""
    return _NORMALIZED_ORDER.get(normalize_category(label), UNMATCHED_CATEGORY_INDEX)


def same_category(a: str | None, b: str | None) -> bool:
    return normalize_category(a) == normalize_category(b)


def gate_display_name(category_name: str, gate_name: str | None = None) -> str:
    """Name shown for a category gate: explicit gate name or "<Category> Gate"."""
    if gate_name:
        return gate_name
    return f"{_MISSPELLING_RE.sub('Preliminary', category_name.strip())} Gate"


def sort_categories(labels) -> list[str]:
    """Order category labels by phase, unmatched labels last (alphabetical)."""
    return sorted(labels, key=lambda label: (category_index(label), normalize_category(label)))
