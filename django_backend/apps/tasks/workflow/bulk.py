"""
Bulk transition coordinator.

Filters a selection down to the tasks the acting user may transition, sends a
single batched request for them and turns the response into user-facing
notices. Three failure framings are kept apart:

* precondition: nothing was attempted (empty selection, nothing eligible)
* item errors: the request ran but some tasks were rejected server-side
* transport: the request itself failed; the selection is left untouched
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .guards import GUARD_CONDITIONS, TransitionKind, is_allowed, rejection_reason
from .records import ActingUser, TaskRecord

logger = logging.getLogger(__name__)

INFO = "info"
SUCCESS = "success"
WARNING = "warning"
ERROR = "error"

VERBS = {
    TransitionKind.COMPLETE: "mark complete",
    TransitionKind.FIRST_VERIFY: "first verify",
    TransitionKind.SECOND_VERIFY: "second verify",
}

PAST_TENSE = {
    TransitionKind.COMPLETE: "marked complete",
    TransitionKind.FIRST_VERIFY: "first verified",
    TransitionKind.SECOND_VERIFY: "second verified",
}

BY_FIELDS = {
    TransitionKind.COMPLETE: "completed_by",
    TransitionKind.FIRST_VERIFY: "first_verified_by",
    TransitionKind.SECOND_VERIFY: "second_verified_by",
}

EMPTY_SELECTION_MESSAGE = "Please select at least one task"
NOTHING_PROCESSED_MESSAGE = "No tasks were processed"


class TransportError(Exception):
    """The transition request could not be completed"""

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or "")
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class TaskRef:
    id: Any
    name: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class BulkError:
    task_id: Any
    task_name: str
    error: str

    def to_wire(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "taskName": self.task_name, "error": self.error}


@dataclass(frozen=True)
class BulkResult:
    success: List[TaskRef] = field(default_factory=list)
    errors: List[BulkError] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "success": [s.to_wire() for s in self.success],
            "errors": [e.to_wire() for e in self.errors],
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "BulkResult":
        if not isinstance(payload, Mapping):
            raise TransportError(None)
        success = [
            TaskRef(id=item.get("id"), name=item.get("name") or "")
            for item in payload.get("success") or ()
        ]
        errors = [
            BulkError(
                task_id=item.get("taskId"),
                task_name=item.get("taskName") or "",
                error=item.get("error") or "",
            )
            for item in payload.get("errors") or ()
        ]
        return cls(success=success, errors=errors)


@dataclass(frozen=True)
class BulkTransitionRequest:
    kind: TransitionKind
    task_ids: List[Any]
    acting_user_id: Any
    require_first_verified: bool = False

    def to_payload(self) -> Dict[str, Any]:
        payload = {"task_ids": list(self.task_ids), BY_FIELDS[self.kind]: self.acting_user_id}
        if self.require_first_verified:
            payload["require_first_verified"] = True
        return payload


RequestFn = Callable[[BulkTransitionRequest], Union[BulkResult, Mapping[str, Any]]]


@dataclass(frozen=True)
class Notice:
    level: str
    message: str


class OutcomeKind(Enum):
    PRECONDITION = "precondition"
    REJECTED_BUSY = "rejected_busy"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED_ITEMS = "failed_items"
    NOTHING_PROCESSED = "nothing_processed"
    TRANSPORT = "transport"


@dataclass
class BulkOutcome:
    kind: OutcomeKind
    transition: TransitionKind
    notices: List[Notice] = field(default_factory=list)
    result: Optional[BulkResult] = None
    eligible_ids: List[Any] = field(default_factory=list)
    ineligible_ids: List[Any] = field(default_factory=list)
    request_issued: bool = False

    @property
    def clear_selection(self) -> bool:
        return self.result is not None and bool(self.result.success)

    @property
    def refresh(self) -> bool:
        return self.clear_selection


def success_message(kind: TransitionKind, count: int) -> str:
    return f"{count} task(s) {PAST_TENSE[kind]} successfully"


def errors_message(kind: TransitionKind, errors: Sequence[BulkError]) -> str:
    if len(errors) == 1:
        e = errors[0]
        return f"Failed to {VERBS[kind]} {e.task_name}: {e.error}"
    lines = [f"Failed to {VERBS[kind]} {len(errors)} task(s):"]
    lines.extend(f"{e.task_name}: {e.error}" for e in errors)
    return "\n".join(lines)


def transport_message(kind: TransitionKind, error: Exception) -> str:
    message = getattr(error, "message", None)
    if message:
        return message
    return f"Failed to {VERBS[kind]} tasks. Please try again."


class BulkOperationCoordinator:
    """
    Runs one transition over a selection of tasks.

    Only one request per transition kind may be in flight at a time; other
    kinds are independent of each other.
    """

    def __init__(self, request_fn: Optional[RequestFn] = None,
                 on_notice: Optional[Callable[[Notice], None]] = None):
        self.request_fn = request_fn
        self.on_notice = on_notice
        self._in_flight = set()

    def is_busy(self, kind: TransitionKind) -> bool:
        return kind in self._in_flight

    def execute(self, selection: Sequence[TaskRecord], kind: TransitionKind,
                acting_user: ActingUser, request_fn: Optional[RequestFn] = None) -> BulkOutcome:
        return self._run(selection, kind, acting_user, request_fn, single=False)

    def execute_single(self, task: TaskRecord, kind: TransitionKind,
                       acting_user: ActingUser, request_fn: Optional[RequestFn] = None) -> BulkOutcome:
        return self._run([task], kind, acting_user, request_fn, single=True)

    def _notify(self, outcome: BulkOutcome, level: str, message: str):
        notice = Notice(level, message)
        outcome.notices.append(notice)
        if self.on_notice is not None:
            self.on_notice(notice)

    def _run(self, selection, kind, acting_user, request_fn, single):
        request_fn = request_fn or self.request_fn
        if request_fn is None:
            raise ValueError("A request function is required to run a transition")

        outcome = BulkOutcome(kind=OutcomeKind.PRECONDITION, transition=kind)

        if self.is_busy(kind):
            outcome.kind = OutcomeKind.REJECTED_BUSY
            self._notify(outcome, WARNING, f"A {VERBS[kind]} request is already in progress")
            return outcome

        if not selection:
            self._notify(outcome, WARNING, EMPTY_SELECTION_MESSAGE)
            return outcome

        eligible = [t for t in selection if is_allowed(t, acting_user, kind)]
        outcome.eligible_ids = [t.id for t in eligible]
        outcome.ineligible_ids = [t.id for t in selection if not is_allowed(t, acting_user, kind)]

        if not eligible:
            if single:
                message = rejection_reason(selection[0], acting_user, kind)
            else:
                message = f"No eligible tasks: {GUARD_CONDITIONS[kind]}"
            logger.info(f"{kind.value} rejected locally for user {acting_user.id}: {message}")
            self._notify(outcome, WARNING, message)
            return outcome

        if len(eligible) < len(selection):
            self._notify(
                outcome,
                INFO,
                f"Only {len(eligible)} out of {len(selection)} selected tasks are eligible",
            )

        request = BulkTransitionRequest(
            kind=kind,
            task_ids=outcome.eligible_ids,
            acting_user_id=acting_user.id,
            require_first_verified=kind is TransitionKind.SECOND_VERIFY,
        )

        self._in_flight.add(kind)
        outcome.request_issued = True
        try:
            response = request_fn(request)
            result = response if isinstance(response, BulkResult) else BulkResult.from_wire(response)
        except TransportError as e:
            logger.error(f"{kind.value} request failed for {len(request.task_ids)} task(s): {e}")
            outcome.kind = OutcomeKind.TRANSPORT
            self._notify(outcome, ERROR, transport_message(kind, e))
            return outcome
        finally:
            self._in_flight.discard(kind)

        outcome.result = result
        self._report(outcome, result)
        return outcome

    def _report(self, outcome: BulkOutcome, result: BulkResult):
        kind = outcome.transition
        if result.success:
            self._notify(outcome, SUCCESS, success_message(kind, len(result.success)))
        if result.errors:
            for e in result.errors:
                logger.warning(f"{kind.value} rejected for task {e.task_id}: {e.error}")
            self._notify(outcome, WARNING if result.success else ERROR, errors_message(kind, result.errors))

        if result.success and result.errors:
            outcome.kind = OutcomeKind.PARTIAL
        elif result.success:
            outcome.kind = OutcomeKind.COMPLETED
        elif result.errors:
            outcome.kind = OutcomeKind.FAILED_ITEMS
        else:
            outcome.kind = OutcomeKind.NOTHING_PROCESSED
            self._notify(outcome, INFO, NOTHING_PROCESSED_MESSAGE)

        logger.info(
            f"{kind.value}: {len(result.success)} succeeded, {len(result.errors)} failed"
        )
