"""
Query matching over the task tree.

Matching is case-insensitive substring containment across a per-view list of
dotted field paths. A story row stays visible when it or any of its direct
subtasks matches, and then brings all of its subtasks along; a story is only
auto-expanded when it actually has subtasks to show.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from .hierarchy import Hierarchy, TaskNode
from .records import TaskRecord, resolve_field

logger = logging.getLogger(__name__)

COLUMN = "column"
GLOBAL = "global"

VIEW_SEARCH_FIELDS: Dict[str, Tuple[str, ...]] = {
    "project_tasks": ("name", "tcode", "task_type_label", "status", "assignees.username"),
    "all_tasks": ("name", "tcode", "project.name", "task_type_label", "status"),
    "request_tasks": ("name", "tcode", "project.name", "group"),
}
DEFAULT_VIEW = "project_tasks"


def search_fields_for(view: Optional[str] = None) -> Tuple[str, ...]:
    """Field list for a table view, honouring the TASK_SEARCH_FIELDS setting"""
    from django.conf import settings

    configured = getattr(settings, "TASK_SEARCH_FIELDS", None) or {}
    name = view or DEFAULT_VIEW
    if name in configured:
        return tuple(configured[name])
    if name not in VIEW_SEARCH_FIELDS:
        logger.warning(f"Unknown task view {name!r}, using {DEFAULT_VIEW} search fields")
        name = DEFAULT_VIEW
    return VIEW_SEARCH_FIELDS[name]


@dataclass(frozen=True)
class NodeMatch:
    self_match: bool
    any_child_match: bool = False

    @property
    def matched(self) -> bool:
        return self.self_match or self.any_child_match


def _contains(value, needle: str) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(_contains(v, needle) for v in value)
    return needle in str(value).casefold()


def record_matches(record: TaskRecord, query: str, fields: Sequence[str]) -> bool:
    needle = query.strip().casefold()
    if not needle:
        return False
    return any(_contains(resolve_field(record, path), needle) for path in fields)


def match_node(node: TaskNode, query: str, fields: Sequence[str]) -> NodeMatch:
    self_match = record_matches(node.task, query, fields)
    any_child_match = any(record_matches(c.task, query, fields) for c in node.children)
    return NodeMatch(self_match=self_match, any_child_match=any_child_match)


@dataclass(frozen=True)
class SearchResult:
    query: str
    matches: Dict[str, NodeMatch] = field(default_factory=dict)
    expanded: FrozenSet[str] = frozenset()
    visible: FrozenSet[str] = frozenset()

    @property
    def active(self) -> bool:
        return bool(self.query.strip())


def apply_search(hierarchy: Hierarchy, query: str, fields: Sequence[str]) -> SearchResult:
    """
    Evaluate ``query`` over every row of ``hierarchy``.

    Returns:
        SearchResult: per-row match keyed by row key, the auto-expand set and
        the visible row keys. A blank query leaves every row visible and
        expands nothing.
    """
    if not query or not query.strip():
        visible = frozenset(n.key for n in hierarchy.iter_nodes())
        return SearchResult(query=query or "", visible=visible)

    matches: Dict[str, NodeMatch] = {}
    expanded = set()
    visible = set()
    for root in hierarchy.roots:
        root_match = match_node(root, query, fields)
        matches[root.key] = root_match
        for child in root.children:
            matches[child.key] = NodeMatch(self_match=record_matches(child.task, query, fields))

        if root_match.matched:
            visible.add(root.key)
            visible.update(c.key for c in root.children)
            if root.children:
                expanded.add(root.key)

    return SearchResult(
        query=query,
        matches=matches,
        expanded=frozenset(expanded),
        visible=frozenset(visible),
    )


@dataclass(frozen=True)
class SearchState:
    """
    The two query channels of a task table.

    Only one channel is active at a time. Activating one blanks the other's
    active text but keeps its last value so it can be restored.
    """

    column_field: Optional[str] = None
    column_query: str = ""
    column_last: str = ""
    global_query: str = ""
    global_last: str = ""

    @property
    def active_channel(self) -> Optional[str]:
        if self.column_query.strip() and self.column_field:
            return COLUMN
        if self.global_query.strip():
            return GLOBAL
        return None

    @property
    def active_query(self) -> str:
        channel = self.active_channel
        if channel == COLUMN:
            return self.column_query
        if channel == GLOBAL:
            return self.global_query
        return ""

    def active_fields(self, global_fields: Sequence[str]) -> Tuple[str, ...]:
        if self.active_channel == COLUMN:
            return (self.column_field,)
        return tuple(global_fields)

    def with_column(self, field_path: str, text: str) -> "SearchState":
        return replace(
            self,
            column_field=field_path,
            column_query=text,
            column_last=text,
            global_query="",
        )

    def with_global(self, text: str) -> "SearchState":
        return replace(self, global_query=text, global_last=text, column_query="")

    def cleared(self) -> "SearchState":
        return replace(self, column_query="", global_query="")

    def highlights(self, channel: str, field_path: Optional[str] = None) -> str:
        """Text a cell should highlight, or '' when the channel is not active"""
        if channel != self.active_channel:
            return ""
        if channel == COLUMN and field_path != self.column_field:
            return ""
        return self.active_query
