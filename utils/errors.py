"""
Domain exceptions shared by the store, the monitoring pipeline and the
connectors.  ``api.middleware`` maps them to HTTP responses.
"""

from __future__ import annotations

from typing import Any, Optional


class ActionNotFoundError(LookupError):
    def __init__(self, action_id: int):
        super().__init__(f"Action {action_id} not found")
        self.action_id = action_id


class ActionForbiddenError(PermissionError):
    def __init__(self, action_id: int, user_id: int):
        super().__init__(f"User {user_id} does not own action {action_id}")
        self.action_id = action_id
        self.user_id = user_id


class ActionStateError(RuntimeError):
    """The action already left ``pending``; review and execution are closed."""

    def __init__(self, action_id: int, status: str):
        super().__init__(f"Action {action_id} is already '{status}'")
        self.action_id = action_id
        self.status = status


class AgentServiceError(RuntimeError):
    """The reasoning service answered with an error or an unusable payload."""

    def __init__(
        self,
        detail: Any,
        *,
        status_code: Optional[int] = None,
    ):
        super().__init__(str(detail))
        self.detail = detail
        self.status_code = status_code


class AgentUnavailableError(AgentServiceError):
    """Connection refused or timed out — the service could not be reached."""


class ConnectorError(RuntimeError):
    def __init__(self, detail: str, *, status_code: int = 502):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
