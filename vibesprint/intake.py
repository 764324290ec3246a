"""Intake: which tracker issues are eligible for dispatch, and in what order.

The eligibility predicate is shared by every provider so that GitHub and Linear
issues are filtered by exactly the same rules. Providers only supply the raw
label set, the current column/state id, and their label namespace.
"""

import re
from collections.abc import Iterable

from vibesprint.models import Issue


def is_eligible(
    labels: Iterable[str],
    column: str | None,
    *,
    ready: str | None,
    namespace: str = "",
    repo_label: str | None = None,
) -> bool:
    """Return True if an issue with these labels, sitting in column, should be picked up.

    namespace is the provider's status label prefix ("vibesprint:" for Linear), so
    ``running`` is looked up as ``<namespace>running``.
    """
    if ready is None or column != ready:
        return False
    label_set = set(labels)
    if repo_label and repo_label not in label_set:
        return False

    def has(flag: str) -> bool:
        return f"{namespace}{flag}" in label_set

    if has("running") or has("done"):
        return False
    # A failed issue gets exactly one more attempt once someone adds retry.
    if has("failed") and not has("retry"):
        return False
    return True


def extract_override(labels: Iterable[str], prefix: str) -> str | None:
    """Return the value of the first ``<prefix>:<value>`` label, in the order given.

    Duplicates are not reconciled: whichever label the provider lists first wins.
    """
    marker = f"{prefix}:"
    for label in labels:
        if label.startswith(marker):
            return label[len(marker) :]
    return None


def number_from_identifier(identifier: str) -> int:
    """ENG-123 → 123; identifiers without a numeric suffix map to 0."""
    match = re.search(r"\d+$", identifier)
    return int(match.group()) if match else 0


def order_pool(issues: Iterable[Issue]) -> list[Issue]:
    """Cross-repo dispatch order: repo name, then issue number."""
    return sorted(issues, key=lambda i: (i.repo_name, i.number))
