from django.test import SimpleTestCase

from apps.tasks.workflow.bulk import (
    EMPTY_SELECTION_MESSAGE, ERROR, INFO, NOTHING_PROCESSED_MESSAGE, SUCCESS, WARNING,
    BulkError, BulkOperationCoordinator, BulkResult, OutcomeKind, TaskRef, TransportError,
    errors_message,
)
from apps.tasks.workflow.guards import TransitionKind

from .helpers import DONE, IN_PROGRESS, OPEN, Permission, subtask, user


class RequestSpy:
    """Records every request and answers with a canned response"""

    def __init__(self, response=None, error=None):
        self.calls = []
        self.response = response
        self.error = error
        self.events = None

    def __call__(self, request):
        self.calls.append(request)
        if self.events is not None:
            self.events.append(("request", request.task_ids))
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(request)
        return self.response


def echo_success(request):
    return {"success": [{"id": i, "name": f"Task {i}"} for i in request.task_ids], "errors": []}


class BulkCoordinatorTest(SimpleTestCase):
    """Test cases for the bulk transition coordinator"""

    def setUp(self):
        """Set up test data"""
        self.manager = user(1, Permission.MARK_COMPLETE_TASK)
        self.partner = user(2, Permission.SECOND_VERIFY_TASK)
        self.events = []
        self.spy = RequestSpy(response=echo_success)
        self.spy.events = self.events
        self.coordinator = BulkOperationCoordinator(
            request_fn=self.spy,
            on_notice=lambda n: self.events.append(("notice", n)),
        )

    def test_only_eligible_tasks_are_requested(self):
        """Test a mixed selection sends the eligible ids in one request"""
        selection = [
            subtask(1, "A", status=IN_PROGRESS),
            subtask(2, "B", status=OPEN),
            subtask(3, "C", status=IN_PROGRESS),
        ]

        outcome = self.coordinator.execute(selection, TransitionKind.COMPLETE, self.manager)

        self.assertEqual(len(self.spy.calls), 1)
        self.assertEqual(self.spy.calls[0].task_ids, [1, 3])
        self.assertEqual(self.spy.calls[0].to_payload(), {"task_ids": [1, 3], "completed_by": 1})
        self.assertEqual(outcome.kind, OutcomeKind.COMPLETED)
        self.assertEqual(outcome.ineligible_ids, [2])
        self.assertTrue(outcome.clear_selection)
        self.assertTrue(outcome.refresh)

        info, request, success = self.events
        self.assertEqual(info[1].level, INFO)
        self.assertEqual(info[1].message, "Only 2 out of 3 selected tasks are eligible")
        self.assertEqual(request, ("request", [1, 3]))
        self.assertEqual(success[1].level, SUCCESS)
        self.assertEqual(success[1].message, "2 task(s) marked complete successfully")

    def test_no_eligible_tasks_never_requests(self):
        """Test nothing is sent when no task is eligible"""
        selection = [subtask(1, "A", status=OPEN), subtask(2, "B", status=DONE)]

        outcome = self.coordinator.execute(selection, TransitionKind.COMPLETE, self.manager)

        self.assertEqual(self.spy.calls, [])
        self.assertFalse(outcome.request_issued)
        self.assertEqual(outcome.kind, OutcomeKind.PRECONDITION)
        self.assertEqual(outcome.notices[0].level, WARNING)
        self.assertTrue(outcome.notices[0].message.startswith("No eligible tasks: "))

    def test_empty_selection(self):
        """Test an empty selection warns without a request"""
        outcome = self.coordinator.execute([], TransitionKind.FIRST_VERIFY, self.manager)

        self.assertEqual(self.spy.calls, [])
        self.assertEqual(outcome.notices[0].message, EMPTY_SELECTION_MESSAGE)

    def test_single_already_second_verified(self):
        """Test a single second verification is rejected locally with its reason"""
        task = subtask(1, "A", status=DONE, first_verified_by=5, second_verified_by=6)

        outcome = self.coordinator.execute_single(task, TransitionKind.SECOND_VERIFY, self.partner)

        self.assertEqual(self.spy.calls, [])
        self.assertEqual(outcome.notices[0].message, "Task is already second verified")

    def test_second_verify_requires_first_on_the_wire(self):
        """Test second verification requests ask the server to re-check first verification"""
        task = subtask(1, "A", status=DONE, first_verified_by=5)

        self.coordinator.execute([task], TransitionKind.SECOND_VERIFY, self.partner)

        self.assertEqual(
            self.spy.calls[0].to_payload(),
            {"task_ids": [1], "second_verified_by": 2, "require_first_verified": True},
        )

    def test_transport_error_keeps_selection(self):
        """Test a failed request reports an error and leaves the selection alone"""
        spy = RequestSpy(error=TransportError())
        outcome = self.coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE, self.manager, request_fn=spy,
        )

        self.assertEqual(outcome.kind, OutcomeKind.TRANSPORT)
        self.assertFalse(outcome.clear_selection)
        self.assertEqual(outcome.notices[-1].level, ERROR)
        self.assertEqual(outcome.notices[-1].message, "Failed to mark complete tasks. Please try again.")
        self.assertFalse(self.coordinator.is_busy(TransitionKind.COMPLETE))

    def test_transport_error_uses_server_message(self):
        """Test the server's message is shown when one is given"""
        spy = RequestSpy(error=TransportError("Service unavailable", status_code=503))
        outcome = self.coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE, self.manager, request_fn=spy,
        )

        self.assertEqual(outcome.notices[-1].message, "Service unavailable")

    def test_partial_success(self):
        """Test server-side rejections are reported next to successes"""
        spy = RequestSpy(response={
            "success": [{"id": 1, "name": "A"}],
            "errors": [{"taskId": 3, "taskName": "C", "error": "Task is already completed"}],
        })
        selection = [subtask(1, "A", status=IN_PROGRESS), subtask(3, "C", status=IN_PROGRESS)]

        outcome = self.coordinator.execute(selection, TransitionKind.COMPLETE, self.manager, request_fn=spy)

        self.assertEqual(outcome.kind, OutcomeKind.PARTIAL)
        self.assertTrue(outcome.clear_selection)
        self.assertEqual(
            [n.message for n in outcome.notices],
            ["1 task(s) marked complete successfully", "Failed to mark complete C: Task is already completed"],
        )

    def test_all_items_failed_keeps_selection(self):
        """Test selection survives when every item was rejected"""
        spy = RequestSpy(response=BulkResult(errors=[BulkError(1, "A", "nope")]))

        outcome = self.coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE, self.manager, request_fn=spy,
        )

        self.assertEqual(outcome.kind, OutcomeKind.FAILED_ITEMS)
        self.assertFalse(outcome.clear_selection)
        self.assertEqual(outcome.notices[-1].level, ERROR)

    def test_nothing_processed(self):
        """Test an empty response is reported as nothing processed"""
        spy = RequestSpy(response={"success": [], "errors": []})

        outcome = self.coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE, self.manager, request_fn=spy,
        )

        self.assertEqual(outcome.kind, OutcomeKind.NOTHING_PROCESSED)
        self.assertEqual(outcome.notices[-1].message, NOTHING_PROCESSED_MESSAGE)

    def test_busy_guard_per_kind(self):
        """Test a second request of the same kind is refused while one is in flight"""
        nested = {}

        def reentrant(request):
            nested["same"] = self.coordinator.execute(
                [subtask(2, "B", status=IN_PROGRESS)], TransitionKind.COMPLETE, self.manager,
            )
            nested["other"] = self.coordinator.execute(
                [subtask(3, "C", status=DONE)], TransitionKind.FIRST_VERIFY,
                user(1, Permission.FIRST_VERIFY_TASK), request_fn=echo_success,
            )
            return echo_success(request)

        self.coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE, self.manager, request_fn=reentrant,
        )

        self.assertEqual(nested["same"].kind, OutcomeKind.REJECTED_BUSY)
        self.assertEqual(nested["same"].notices[0].message, "A mark complete request is already in progress")
        self.assertEqual(nested["other"].kind, OutcomeKind.COMPLETED)
        self.assertFalse(self.coordinator.is_busy(TransitionKind.COMPLETE))

    def test_missing_request_function(self):
        """Test running without a request function is a programming error"""
        with self.assertRaises(ValueError):
            BulkOperationCoordinator().execute([], TransitionKind.COMPLETE, self.manager)


class BulkMessagesTest(SimpleTestCase):
    """Test cases for notice texts and the wire format"""

    def test_aggregated_errors(self):
        """Test several errors are listed one per line"""
        message = errors_message(
            TransitionKind.FIRST_VERIFY,
            [BulkError(1, "A", "Task is already first verified"), BulkError(2, "B", "Task not found")],
        )

        self.assertEqual(
            message,
            "Failed to first verify 2 task(s):\nA: Task is already first verified\nB: Task not found",
        )

    def test_wire_format(self):
        """Test results use the camel-case error keys on the wire"""
        result = BulkResult(success=[TaskRef(1, "A")], errors=[BulkError(2, "B", "x")])
        wire = result.to_wire()

        self.assertEqual(wire["errors"], [{"taskId": 2, "taskName": "B", "error": "x"}])
        self.assertEqual(BulkResult.from_wire(wire), result)
