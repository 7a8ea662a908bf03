from unittest.mock import MagicMock

import requests
from django.test import SimpleTestCase, override_settings

from apps.tasks.workflow.bulk import BulkOperationCoordinator, OutcomeKind, TransportError
from apps.tasks.workflow.client import WorkflowClient
from apps.tasks.workflow.guards import TransitionKind

from .helpers import IN_PROGRESS, Permission, subtask, user


def fake_response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class WorkflowClientTest(SimpleTestCase):
    """Test cases for the HTTP workflow client"""

    def setUp(self):
        """Set up test data"""
        self.session = MagicMock()
        self.session.headers = {}
        self.client_ = WorkflowClient(
            base_url="http://api.test/api", token="abc", timeout=5, session=self.session,
        )

    def test_bearer_token_header(self):
        """Test the token is sent as a bearer credential"""
        self.assertEqual(self.session.headers["Authorization"], "Bearer abc")

    @override_settings(WORKFLOW_API_BASE_URL="http://configured/api/", WORKFLOW_API_TIMEOUT=3)
    def test_defaults_from_settings(self):
        """Test base url and timeout default to settings"""
        client = WorkflowClient(session=self.session)

        self.assertEqual(client.base_url, "http://configured/api/")
        self.assertEqual(client.timeout, 3)

    def test_list_tasks_paginated(self):
        """Test paginated task listings are unwrapped into records"""
        self.session.request.return_value = fake_response(payload={
            "count": 1,
            "results": [{
                "id": 7,
                "name": "Collect receipts",
                "task_type": "task",
                "status": "done",
                "parent_task": 3,
                "project": {"id": 1, "name": "Acme", "project_lead": 4},
                "assignees": [{"id": 2, "username": "mira"}],
                "first_verified_by": None,
            }],
        })

        records = self.client_.list_tasks({"project": 1})

        self.session.request.assert_called_once_with(
            "GET", "http://api.test/api/tasks/", timeout=5, params={"project": 1},
        )
        self.assertEqual(records[0].id, 7)
        self.assertEqual(records[0].parent_task_id, 3)
        self.assertEqual(records[0].project_lead_id, 4)
        self.assertEqual(records[0].assignees[0].username, "mira")
        self.assertFalse(records[0].is_first_verified)

    def test_mark_tasks_complete(self):
        """Test completion posts ids and the acting user"""
        self.session.request.return_value = fake_response(payload={
            "success": [{"id": 1, "name": "A"}],
            "errors": [{"taskId": 2, "taskName": "B", "error": "Task not found"}],
        })

        result = self.client_.mark_tasks_complete([1, 2], 9)

        self.session.request.assert_called_once_with(
            "POST", "http://api.test/api/tasks/mark-complete/", timeout=5,
            json={"task_ids": [1, 2], "completed_by": 9},
        )
        self.assertEqual([s.id for s in result.success], [1])
        self.assertEqual(result.errors[0].error, "Task not found")

    def test_second_verify_payload(self):
        """Test second verification asks for the first verification re-check"""
        self.session.request.return_value = fake_response(payload={"success": [], "errors": []})

        self.client_.second_verify_tasks([4], 9)

        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs["json"], {"task_ids": [4], "second_verified_by": 9, "require_first_verified": True})

    def test_http_error_message(self):
        """Test an error status becomes a transport error with the server message"""
        self.session.request.return_value = fake_response(403, {"detail": "Forbidden"})

        with self.assertRaises(TransportError) as ctx:
            self.client_.first_verify_tasks([1], 9)

        self.assertEqual(ctx.exception.message, "Forbidden")
        self.assertEqual(ctx.exception.status_code, 403)

    def test_http_error_without_json(self):
        """Test an error status with no JSON body has no message"""
        self.session.request.return_value = fake_response(502, json_error=True)

        with self.assertRaises(TransportError) as ctx:
            self.client_.first_verify_tasks([1], 9)

        self.assertIsNone(ctx.exception.message)

    def test_connection_error(self):
        """Test network failures become transport errors"""
        self.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(TransportError):
            self.client_.mark_tasks_complete([1], 9)

    def test_client_as_request_function(self):
        """Test the client plugs into the coordinator"""
        self.session.request.side_effect = requests.Timeout("slow")
        coordinator = BulkOperationCoordinator(request_fn=self.client_)

        outcome = coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE,
            user(9, Permission.MARK_COMPLETE_TASK),
        )

        self.assertEqual(outcome.kind, OutcomeKind.TRANSPORT)
        self.assertEqual(outcome.notices[-1].message, "Failed to mark complete tasks. Please try again.")

    def test_success_without_json_body(self):
        """Test a 2xx reply that is not JSON is reported as a transport failure"""
        self.session.request.return_value = fake_response(200, json_error=True)
        coordinator = BulkOperationCoordinator(request_fn=self.client_)

        with self.assertRaises(TransportError) as ctx:
            self.client_.mark_tasks_complete([1], 9)
        outcome = coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE,
            user(9, Permission.MARK_COMPLETE_TASK),
        )

        self.assertEqual(ctx.exception.status_code, 200)
        self.assertIsNone(ctx.exception.message)
        self.assertEqual(outcome.kind, OutcomeKind.TRANSPORT)
        self.assertEqual(outcome.notices[-1].message, "Failed to mark complete tasks. Please try again.")
        self.assertFalse(coordinator.is_busy(TransitionKind.COMPLETE))

    def test_success_with_unexpected_json(self):
        """Test a JSON reply that is not an object is reported as a transport failure"""
        self.session.request.return_value = fake_response(200, ["not", "a", "result"])
        coordinator = BulkOperationCoordinator(request_fn=self.client_)

        outcome = coordinator.execute(
            [subtask(1, "A", status=IN_PROGRESS)], TransitionKind.COMPLETE,
            user(9, Permission.MARK_COMPLETE_TASK),
        )

        self.assertEqual(outcome.kind, OutcomeKind.TRANSPORT)
        self.assertIsNone(outcome.result)
