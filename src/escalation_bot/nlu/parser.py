from __future__ import annotations

from typing import Any, Optional, Sequence

from ..core.state import Accepted, ParseOutcome, Rejected
from .classifier import LabelClassifier


def match_label(value: Any, labels: Sequence[str]) -> Optional[str]:
    """Case-insensitive exact match, returning the canonical label."""
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for label in labels:
        if label.lower() == wanted:
            return label
    return None


async def by_nlu_with_list(
    classifier: LabelClassifier,
    language: Optional[str],
    domain: str,
    value: Any,
    labels: Sequence[str],
) -> ParseOutcome:
    if not isinstance(value, str) or not value.strip():
        return Rejected("not a text reply")

    direct = match_label(value, labels)
    if direct is not None:
        return Accepted(direct)

    label = await classifier.classify(language, domain, value, labels)
    if label is None:
        return Rejected(f"{value!r} does not match any of {list(labels)}")
    return Accepted(label)
