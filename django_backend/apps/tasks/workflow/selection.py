"""
Parent/child selection conflicts.

Child rows are keyed ``"{parentId}-{childId}"``; a selection must never hold a
story row together with one of its own subtask rows. Resolution looks at the
whole proposed selection at once.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from .hierarchy import KEY_SEPARATOR, row_key

logger = logging.getLogger(__name__)

CONFLICT_WARNING = (
    "A task and its own subtasks cannot be selected together. "
    "Conflicting rows were removed from the selection."
)


def child_key(parent_id, child_id) -> str:
    return row_key(child_id, parent_id)


def is_child_key(key: str) -> bool:
    return KEY_SEPARATOR in str(key)


def parent_of(key: str) -> Optional[str]:
    """Parent row key of a child row key, None for a root row key"""
    key = str(key)
    if not is_child_key(key):
        return None
    return key.split(KEY_SEPARATOR, 1)[0]


@dataclass(frozen=True)
class SelectionResolution:
    resolved: FrozenSet[str]
    had_conflict: bool
    dropped: FrozenSet[str] = frozenset()

    @property
    def warning(self) -> Optional[str]:
        return CONFLICT_WARNING if self.had_conflict else None


def resolve_selection(current: Iterable[str], proposed: Iterable[str]) -> SelectionResolution:
    """
    Resolve a proposed selection against the parent/child exclusion rule.

    A child row is dropped when its parent row is also proposed, so the story
    row wins every conflict. ``current`` is the selection being replaced; the result
    depends on ``proposed`` alone.
    """
    previous = frozenset(str(k) for k in current)
    keys = frozenset(str(k) for k in proposed)

    dropped = {k for k in keys if parent_of(k) in keys}

    if dropped:
        logger.info(
            f"Selection conflict: dropped {len(dropped)} row(s) "
            f"(previous selection had {len(previous)})"
        )
    return SelectionResolution(
        resolved=keys - dropped,
        had_conflict=bool(dropped),
        dropped=frozenset(dropped),
    )
