"""External tool execution service client."""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from autorule.core.config import get_settings
from autorule.core.exceptions import ActionExecutionError
from autorule.core.logging import get_logger

logger = get_logger(__name__)


class ActionProvider(ABC):
    """Executes named tools on behalf of a user."""

    @abstractmethod
    async def execute(self, tool_name: str, parameters: dict[str, Any], user_id: str) -> Any:
        """Run a tool and return its result data.

        Raises:
            ActionExecutionError: If the tool call fails
        """

    async def list_tools(self, user_id: str) -> list[str]:
        """Tool names available to ``user_id``. Override if the service exposes a catalogue."""
        return []

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass


class HttpActionProvider(ActionProvider):
    """Tool execution over HTTP.

    ``POST {base_url}/execute`` with ``{"tool_name", "arguments", "user_id"}``
    answers ``{"success": bool, "data": ..., "error": ...}``.
    ``GET {base_url}/tools?user_id=`` answers ``{"tools": [name, ...]}``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        headers = {}
        key = api_key if api_key is not None else settings.action_provider_api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"

        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.action_provider_url,
            headers=headers,
            timeout=timeout or settings.action_provider_timeout,
        )

    async def execute(self, tool_name: str, parameters: dict[str, Any], user_id: str) -> Any:
        logger.info("Executing tool", tool_name=tool_name, user_id=user_id)
        try:
            response = await self._client.post(
                "/execute",
                json={"tool_name": tool_name, "arguments": parameters, "user_id": user_id},
            )
        except httpx.HTTPError as e:
            raise ActionExecutionError(f"Action provider unreachable: {e}", tool_name) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success", False):
            error = body.get("error") or f"Tool execution failed with status {response.status_code}"
            logger.warning(
                "Tool execution failed",
                tool_name=tool_name,
                status_code=response.status_code,
                error=error,
            )
            raise ActionExecutionError(str(error), tool_name, response.status_code)

        return body.get("data")

    async def list_tools(self, user_id: str) -> list[str]:
        try:
            response = await self._client.get("/tools", params={"user_id": user_id})
            response.raise_for_status()
            tools = response.json().get("tools", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Could not list tools", user_id=user_id, error=str(e))
            return []
        return [str(t) for t in tools]

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
