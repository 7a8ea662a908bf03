import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

from .bulk import BulkResult, BulkTransitionRequest, TransportError
from .guards import TransitionKind
from .records import TaskRecord

logger = logging.getLogger(__name__)

TRANSITION_PATHS = {
    TransitionKind.COMPLETE: "tasks/mark-complete/",
    TransitionKind.FIRST_VERIFY: "tasks/first-verify/",
    TransitionKind.SECOND_VERIFY: "tasks/second-verify/",
}


def _error_message(response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, Mapping):
        return payload.get("message") or payload.get("detail")
    return None


class WorkflowClient:
    """
    HTTP client for the task workflow API.

    Instances are callable and can be handed to ``BulkOperationCoordinator``
    as its request function.
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        if base_url is None or timeout is None:
            from django.conf import settings

            base_url = base_url or getattr(settings, "WORKFLOW_API_BASE_URL", "http://localhost:8000/api/")
            timeout = timeout or getattr(settings, "WORKFLOW_API_TIMEOUT", 10)
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = self.base_url + path
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(None) from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            raise TransportError(message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {url} returned {response.status_code} without a JSON body")
            raise TransportError(None, status_code=response.status_code) from e

    def list_tasks(self, scope: Optional[Mapping[str, Any]] = None) -> List[TaskRecord]:
        payload = self._request("GET", "tasks/", params=dict(scope or {}))
        if isinstance(payload, Mapping) and "results" in payload:
            payload = payload["results"]
        return [TaskRecord.from_dict(item) for item in payload]

    def transition(self, request: BulkTransitionRequest) -> BulkResult:
        payload = self._request("POST", TRANSITION_PATHS[request.kind], json=request.to_payload())
        return BulkResult.from_wire(payload)

    def mark_tasks_complete(self, task_ids: Iterable[Any], completed_by: Any) -> BulkResult:
        return self.transition(BulkTransitionRequest(TransitionKind.COMPLETE, list(task_ids), completed_by))

    def first_verify_tasks(self, task_ids: Iterable[Any], first_verified_by: Any) -> BulkResult:
        return self.transition(BulkTransitionRequest(TransitionKind.FIRST_VERIFY, list(task_ids), first_verified_by))

    def second_verify_tasks(self, task_ids: Iterable[Any], second_verified_by: Any) -> BulkResult:
        return self.transition(
            BulkTransitionRequest(
                TransitionKind.SECOND_VERIFY,
                list(task_ids),
                second_verified_by,
                require_first_verified=True,
            )
        )

    def __call__(self, request: BulkTransitionRequest) -> BulkResult:
        return self.transition(request)
