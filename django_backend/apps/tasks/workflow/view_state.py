"""
Immutable state of one task table and the pure reducers over it.

Every reducer returns a new ``ViewState``; nothing is merged in place.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .bulk import BulkOutcome
from .guards import TransitionDisplay, TransitionKind, display_states
from .hierarchy import Hierarchy, TaskNode, build_hierarchy
from .records import ActingUser, TaskRecord
from .search import NodeMatch, SearchResult, SearchState, apply_search
from .selection import resolve_selection


@dataclass(frozen=True)
class ViewState:
    search: SearchState = field(default_factory=SearchState)
    sort_key: str = "name"
    descending: bool = False
    selected: FrozenSet[str] = frozenset()
    expanded: FrozenSet[str] = frozenset()
    # (channel, fields, query) whose auto-expand set was last applied to ``expanded``
    auto_expanded_for: Optional[Tuple] = None

    def with_column_query(self, field_path: str, text: str) -> "ViewState":
        return replace(self, search=self.search.with_column(field_path, text))

    def with_global_query(self, text: str) -> "ViewState":
        return replace(self, search=self.search.with_global(text))

    def with_sort(self, sort_key: str, descending: bool = False) -> "ViewState":
        return replace(self, sort_key=sort_key, descending=descending)

    def with_proposed_selection(self, proposed: Iterable[str]):
        """Returns (new state, SelectionResolution)"""
        resolution = resolve_selection(self.selected, proposed)
        return replace(self, selected=resolution.resolved), resolution

    def toggle_expanded(self, key: str) -> "ViewState":
        expanded = set(self.expanded)
        if key in expanded:
            expanded.remove(key)
        else:
            expanded.add(key)
        return replace(self, expanded=frozenset(expanded))

    def after_outcome(self, outcome: BulkOutcome) -> "ViewState":
        if outcome.clear_selection:
            return replace(self, selected=frozenset())
        return self


@dataclass
class TableRow:
    node: TaskNode
    depth: int
    match: Optional[NodeMatch]
    expanded: bool
    selected: bool
    transitions: Dict[TransitionKind, TransitionDisplay]


@dataclass
class TableView:
    state: ViewState
    hierarchy: Hierarchy
    search: SearchResult
    rows: List[TableRow]

    @property
    def expanded(self) -> FrozenSet[str]:
        return self.state.expanded


def render(state: ViewState, records: Sequence[TaskRecord], user: ActingUser,
           fields: Sequence[str]):
    """
    Rebuild the table from scratch for ``records``.

    Returns (new state, TableView). When the active query changes the expand
    set is replaced by the search's auto-expand set; rows toggled afterwards
    keep their state until the query changes again.
    """
    hierarchy = build_hierarchy(records, sort_key=state.sort_key, descending=state.descending)
    query = state.search.active_query
    active_fields = state.search.active_fields(fields)
    result = apply_search(hierarchy, query, active_fields)

    applied_for = (state.search.active_channel, active_fields, query) if result.active else None
    if applied_for != state.auto_expanded_for:
        if applied_for is not None:
            state = replace(state, expanded=result.expanded)
        state = replace(state, auto_expanded_for=applied_for)
    known = {n.key for n in hierarchy.iter_nodes()}
    state = replace(
        state,
        selected=frozenset(k for k in state.selected if k in known),
        expanded=frozenset(k for k in state.expanded if k in known),
    )

    rows: List[TableRow] = []
    for root in hierarchy.roots:
        if root.key not in result.visible:
            continue
        is_open = root.key in state.expanded
        rows.append(_row(root, 0, result, is_open, state, user))
        if is_open:
            for child in root.children:
                if child.key in result.visible:
                    rows.append(_row(child, 1, result, False, state, user))

    return state, TableView(state=state, hierarchy=hierarchy, search=result, rows=rows)


def _row(node, depth, result, is_open, state, user) -> TableRow:
    return TableRow(
        node=node,
        depth=depth,
        match=result.matches.get(node.key),
        expanded=is_open,
        selected=node.key in state.selected,
        transitions=display_states(node.task, user),
    )


def selected_records(view: TableView) -> List[TaskRecord]:
    """Task records behind the selected row keys, in table order"""
    return [n.task for n in view.hierarchy.iter_nodes() if n.key in view.state.selected]
