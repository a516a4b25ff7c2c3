"""
Concept: API

Bridges external request handlers into the synchronization world. A handler
records a request, synchronizations react to it, and one of them eventually
calls ``respond``. The handler waits for that response.

Actions:
  - request: Record an incoming request, returns {"request": id}
  - respond: Attach the output for a request

Queries:
  - _get_request: The stored request, as a one-element list
  - _wait_for_response: Poll until the request is answered or timeout
"""
from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Dict, List, Optional

DEFAULT_TIMEOUT = 10.0
POLL_INTERVAL = 0.01
METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


class APIConcept:
    def __init__(self) -> None:
        self.requests: Dict[str, Dict[str, Any]] = {}
        self.responses: Dict[str, Any] = {}

    def request(self, method: str, path: str, request: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
        """Record an incoming request."""
        method = method.upper()
        if method not in METHODS:
            return {"error": f"Invalid HTTP method: {method}"}
        request_id = request or f"request-{uuid.uuid4()}"
        if request_id in self.requests:
            return {"error": f"Request {request_id} already exists"}
        self.requests[request_id] = {"request": request_id, "method": method, "path": path, **fields}
        return {"request": request_id}

    def respond(self, request: str, output: Any) -> Dict[str, Any]:
        """Attach the output for a request."""
        if request not in self.requests:
            return {"error": f"Request {request} not found"}
        if request in self.responses:
            return {"error": f"Request {request} already has a response"}
        self.responses[request] = output
        return {"request": request}

    def _get_request(self, request: str) -> List[Dict[str, Any]]:
        record = self.requests.get(request)
        return [dict(record)] if record else []

    async def _wait_for_response(self, request: str, timeout: float = DEFAULT_TIMEOUT) -> List[Any]:
        """Poll for a response. Empty list on timeout."""
        deadline = time.monotonic() + timeout
        while True:
            if request in self.responses:
                return [self.responses[request]]
            if time.monotonic() >= deadline:
                return []
            await asyncio.sleep(POLL_INTERVAL)


async def handle_request(
    api: Any,
    method: str,
    path: str,
    timeout: float = DEFAULT_TIMEOUT,
    **fields: Any,
) -> Dict[str, Any]:
    """
    Funnel one external request through an instrumented API concept.

    Args:
        api: The instrumented API façade
        method: HTTP method
        path: Route pattern, as written in synchronizations
        timeout: Seconds to wait for a response
        **fields: Remaining request fields (body, params, owner, ...)

    Returns:
        The response output, or an {"error": ...} record
    """
    created = await api.request(method=method, path=path, **fields)
    if "error" in created:
        return created
    responses = await api._wait_for_response(request=created["request"], timeout=timeout)
    if not responses:
        return {"error": "No response"}
    return responses[0]
