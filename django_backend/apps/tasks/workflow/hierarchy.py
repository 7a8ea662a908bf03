"""
Two-level task tree assembly.

Stories become roots with their subtasks nested beneath them; ``task`` records
with no usable parent become standalone roots. Every input record ends up in
exactly one place in the tree.
"""

import locale
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .records import TaskRecord, resolve_field

ROOT_STORY = "story"
ROOT_STANDALONE = "standalone"
CHILD = "child"

KEY_SEPARATOR = "-"

# root sort paths exposed to API callers
SORTABLE_FIELDS = (
    "name",
    "tcode",
    "status",
    "priority",
    "group",
    "due_date",
    "task_type",
    "project.name",
    "first_verified_at",
    "second_verified_at",
)


def row_key(task_id: Any, parent_id: Optional[Any] = None) -> str:
    if parent_id is None:
        return str(task_id)
    return f"{parent_id}{KEY_SEPARATOR}{task_id}"


@dataclass
class TaskNode:
    task: TaskRecord
    kind: str
    children: List["TaskNode"] = field(default_factory=list)
    parent_id: Optional[Any] = None

    @property
    def id(self):
        return self.task.id

    @property
    def key(self) -> str:
        return row_key(self.task.id, self.parent_id)

    @property
    def expandable(self) -> bool:
        return bool(self.children)


@dataclass
class Hierarchy:
    roots: List[TaskNode]

    @property
    def stories(self) -> List[TaskNode]:
        return [n for n in self.roots if n.kind == ROOT_STORY]

    @property
    def standalone(self) -> List[TaskNode]:
        return [n for n in self.roots if n.kind == ROOT_STANDALONE]

    def node_count(self) -> int:
        return sum(1 + len(n.children) for n in self.roots)

    def iter_nodes(self):
        for root in self.roots:
            yield root
            yield from root.children

    def find(self, key: str) -> Optional[TaskNode]:
        for node in self.iter_nodes():
            if node.key == key:
                return node
        return None


def _id_key(task_id):
    # ints order numerically, anything else by its string form
    if isinstance(task_id, int) and not isinstance(task_id, bool):
        return (0, task_id, "")
    return (1, 0, str(task_id))


def _text_key(value: str):
    return locale.strxfrm(value.casefold())


def sort_value(record: TaskRecord, sort_key: str):
    """
    Comparable value for ``sort_key``; missing values sort last.

    Numbers compare numerically and dates chronologically. Anything else,
    including nested records and lists, compares by its text form, so values
    of mixed types never raise.
    """
    value = resolve_field(record, sort_key)
    if value is None or value == "":
        return (1, 0, "")
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return (0, 0, value)
    if isinstance(value, date):
        return (0, 1, value.isoformat())
    return (0, 2, _text_key(str(value)))


def _sort_by_name(nodes: List[TaskNode]) -> List[TaskNode]:
    return sorted(nodes, key=lambda n: (_text_key(n.task.name), _id_key(n.task.id)))


def sort_roots(roots: Sequence[TaskNode], sort_key: str = "name", descending: bool = False) -> List[TaskNode]:
    # stable sorts: id tie-break first, primary key second
    ordered = sorted(roots, key=lambda n: _id_key(n.task.id))
    present = [n for n in ordered if sort_value(n.task, sort_key)[0] == 0]
    missing = [n for n in ordered if sort_value(n.task, sort_key)[0] == 1]
    present.sort(key=lambda n: sort_value(n.task, sort_key), reverse=descending)
    return present + missing


def build_hierarchy(
    records: Iterable[TaskRecord],
    sort_key: str = "name",
    descending: bool = False,
) -> Hierarchy:
    """
    Group flat task records into story roots, their subtasks, and standalone tasks.

    Args:
        records: flat task collection, in any order
        sort_key: dotted field path the roots are ordered by
        descending: reverse the root order (ties still break on id ascending)

    Returns:
        Hierarchy: roots with nested children
    """
    records = list(records)
    by_id: Dict[Any, TaskRecord] = {r.id: r for r in records}

    children_by_parent: Dict[Any, List[Any]] = defaultdict(list)
    for r in records:
        if not r.is_story and r.parent_task_id is not None:
            children_by_parent[r.parent_task_id].append(r.id)

    stories = [r for r in records if r.is_story]
    claimed = set()
    roots: List[TaskNode] = []

    for story in sorted(stories, key=lambda s: _id_key(s.id)):
        if story.sub_task_ids:
            candidate_ids = story.sub_task_ids
        else:
            candidate_ids = children_by_parent.get(story.id, ())

        children = []
        for child_id in candidate_ids:
            child = by_id.get(child_id)
            if child is None or child.is_story or child.id in claimed:
                continue
            claimed.add(child.id)
            children.append(TaskNode(task=child, kind=CHILD, parent_id=story.id))

        roots.append(TaskNode(task=story, kind=ROOT_STORY, children=_sort_by_name(children)))

    for r in records:
        if not r.is_story and r.id not in claimed:
            roots.append(TaskNode(task=r, kind=ROOT_STANDALONE))

    return Hierarchy(roots=sort_roots(roots, sort_key, descending))
