from .bulk import (
    BulkError,
    BulkOperationCoordinator,
    BulkOutcome,
    BulkResult,
    BulkTransitionRequest,
    Notice,
    OutcomeKind,
    TaskRef,
    TransportError,
)
from .guards import (
    DisplayState,
    TransitionDisplay,
    TransitionKind,
    can_complete,
    can_first_verify,
    can_second_verify,
    display_state,
    rejection_reason,
)
from .hierarchy import Hierarchy, TaskNode, build_hierarchy
from .records import ActingUser, Permission, ProjectRef, TaskRecord, UserRef
from .search import SearchResult, SearchState, apply_search, match_node
from .selection import SelectionResolution, resolve_selection
from .view_state import TableView, ViewState, render

__all__ = [
    "ActingUser",
    "BulkError",
    "BulkOperationCoordinator",
    "BulkOutcome",
    "BulkResult",
    "BulkTransitionRequest",
    "DisplayState",
    "Hierarchy",
    "Notice",
    "OutcomeKind",
    "Permission",
    "ProjectRef",
    "SearchResult",
    "SearchState",
    "SelectionResolution",
    "TableView",
    "TaskNode",
    "TaskRecord",
    "TaskRef",
    "TransitionDisplay",
    "TransitionKind",
    "TransportError",
    "UserRef",
    "ViewState",
    "apply_search",
    "build_hierarchy",
    "can_complete",
    "can_first_verify",
    "can_second_verify",
    "display_state",
    "match_node",
    "rejection_reason",
    "render",
    "resolve_selection",
]
