"""
HTTP Board Service.

Implements BoardService against the web application's REST backend.
Requests are blocking (requests library) and run in a worker thread so the
engine's event loop is never blocked.
"""

import asyncio
from typing import Any, Callable

import requests

from boardsync.logger import get_logger
from boardsync.kanban.config import get_service_config
from boardsync.kanban.envelope import ApiResponse
from boardsync.kanban.types import CustomStatus, Issue


DEFAULT_BASE_URL = "http://localhost:3001/api"

DEFAULT_PATHS = {
    "board": "/projects/{project_id}/board",
    "issue": "/issues/{issue_id}",
    "statuses": "/kanban/projects/{project_id}/statuses",
    "status": "/kanban/projects/{project_id}/statuses/{status_id}",
    "wip_limits": "/kanban/projects/{project_id}/wip-limits",
}


def _board_from_payload(data: dict) -> dict[str, list[Issue]]:
    return {
        status: [Issue.from_dict(raw) for raw in (issues or [])]
        for status, issues in data.items()
    }


def _statuses_from_payload(data: list) -> list[CustomStatus]:
    return [CustomStatus.from_dict(raw) for raw in data]


def _wip_limits_from_payload(data: Any) -> dict[str, int | None]:
    """The backend returns ``[{status, limit}]``; a plain mapping is accepted too."""
    if isinstance(data, dict):
        return {str(k): (int(v) if v is not None else None) for k, v in data.items()}
    limits: dict[str, int | None] = {}
    for entry in data:
        limit = entry.get("limit")
        limits[str(entry["status"])] = int(limit) if limit is not None else None
    return limits


class HttpBoardService:
    """
    BoardService implementation for the REST backend.

    Every response is read as the ``{success, data, error}`` envelope.
    Network errors and non-2xx answers come back as failure envelopes.
    """

    def __init__(self, config: dict | None = None):
        """
        Initialize service with configuration.

        Args:
            config: Service config dict. If None, loads from config file.
                    Expected keys: base_url, token, timeout_s, paths
        """
        if config is None:
            config = get_service_config("http")

        self._config = config
        self._base_url = (config.get("base_url") or DEFAULT_BASE_URL).rstrip("/")
        self._token = config.get("token", "")
        self._timeout_s = config.get("timeout_s", 30)
        self._paths = {**DEFAULT_PATHS, **(config.get("paths") or {})}
        self._log = get_logger("http")

    @property
    def name(self) -> str:
        """Service identifier."""
        return "http"

    # --- Transport ---

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _url(self, path_key: str, **params: str) -> str:
        return f"{self._base_url}{self._paths[path_key].format(**params)}"

    def _send(self, method: str, url: str, body: dict | None = None) -> ApiResponse[Any]:
        """Blocking request -> envelope. Never raises for remote failures."""
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                json=body,
                timeout=self._timeout_s,
            )
        except requests.RequestException as e:
            self._log.error("Request failed", method=method, url=url, error=str(e))
            return ApiResponse.fail(f"Request failed: {e}")

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None
            if response.ok:
                self._log.error("Invalid JSON response", method=method, url=url,
                                status_code=response.status_code)
                return ApiResponse.fail("Invalid JSON response")

        if not response.ok:
            error = payload.get("error") if isinstance(payload, dict) else None
            if not isinstance(error, dict):
                error = {}
            message = (
                error.get("message")
                or (payload.get("message") if isinstance(payload, dict) else None)
                or response.reason
                or f"HTTP {response.status_code}"
            )
            code = error.get("code") or str(response.status_code)
            self._log.warning("Request rejected", method=method, url=url,
                              status_code=response.status_code, code=code)
            return ApiResponse.fail(str(message), str(code))

        return ApiResponse.from_payload(payload)

    async def _request(
        self,
        method: str,
        url: str,
        body: dict | None = None,
        convert: Callable[[Any], Any] | None = None,
    ) -> ApiResponse[Any]:
        response = await asyncio.to_thread(self._send, method, url, body)
        if convert is None:
            return response
        try:
            return response.map(convert)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            self._log.error("Unexpected response payload", method=method, url=url, error=str(e))
            return ApiResponse.fail(f"Unexpected response payload: {e}")

    # --- Read Operations ---

    async def fetch_board(self, project_id: str) -> ApiResponse[dict[str, list[Issue]]]:
        return await self._request(
            "GET", self._url("board", project_id=project_id), convert=_board_from_payload
        )

    async def fetch_statuses(self, project_id: str) -> ApiResponse[list[CustomStatus]]:
        return await self._request(
            "GET", self._url("statuses", project_id=project_id), convert=_statuses_from_payload
        )

    async def fetch_wip_limits(self, project_id: str) -> ApiResponse[dict[str, int | None]]:
        return await self._request(
            "GET", self._url("wip_limits", project_id=project_id), convert=_wip_limits_from_payload
        )

    # --- Issue Moves ---

    async def update_issue(self, issue_id: str, changes: dict[str, Any]) -> ApiResponse[Issue]:
        def convert(data: dict) -> Issue:
            # Partial answers keep the values that were sent
            merged = dict(data)
            for key in ("status", "order"):
                if merged.get(key) is None and key in changes:
                    merged[key] = changes[key]
            merged.setdefault("id", issue_id)
            return Issue.from_dict(merged)

        return await self._request(
            "PUT", self._url("issue", issue_id=issue_id), body=dict(changes), convert=convert
        )

    # --- Status CRUD ---

    @staticmethod
    def _status_body(data: dict[str, Any]) -> dict[str, Any]:
        body = dict(data)
        if "order" in body:
            body["orderIndex"] = body["order"]
        return body

    async def create_status(self, project_id: str, data: dict[str, Any]) -> ApiResponse[CustomStatus]:
        return await self._request(
            "POST",
            self._url("statuses", project_id=project_id),
            body=self._status_body(data),
            convert=CustomStatus.from_dict,
        )

    async def update_status(
        self,
        project_id: str,
        status_id: str,
        data: dict[str, Any],
    ) -> ApiResponse[CustomStatus]:
        return await self._request(
            "PUT",
            self._url("status", project_id=project_id, status_id=status_id),
            body=self._status_body(data),
            convert=CustomStatus.from_dict,
        )

    async def delete_status(self, project_id: str, status_id: str) -> ApiResponse[None]:
        return await self._request(
            "DELETE", self._url("status", project_id=project_id, status_id=status_id)
        )

    # --- WIP Limits ---

    async def set_wip_limit(
        self,
        project_id: str,
        status: str,
        limit: int | None,
    ) -> ApiResponse[dict[str, Any]]:
        def convert(data: dict) -> dict[str, Any]:
            return {"status": data.get("status", status), "limit": data.get("limit", limit)}

        return await self._request(
            "PUT",
            self._url("wip_limits", project_id=project_id),
            body={"status": status, "limit": limit},
            convert=convert,
        )
