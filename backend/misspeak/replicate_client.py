"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Minimal async client for hosted model predictions (Replicate HTTP API).
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .config import settings
from .errors import RemoteEngineError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}
# Longest server-side hold the API honours for "Prefer: wait".
MAX_PREFER_WAIT_SECONDS = 60
# Headroom left between the server-side hold and the client read timeout.
PREFER_WAIT_MARGIN_SECONDS = 5


def prefer_wait_seconds(timeout: float) -> int:
    """Server-side hold that ends before the client gives up; 0 means poll only."""
    return max(0, min(int(timeout) - PREFER_WAIT_MARGIN_SECONDS, MAX_PREFER_WAIT_SECONDS))


class ReplicateClient:
    """Create predictions and read their results, either whole or streamed."""

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.replicate.com/v1",
        poll_interval: float = 1.0,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/") + "/"
        self.poll_interval = poll_interval

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, headers=self._headers(), timeout=timeout)

    @staticmethod
    def _create_request(model: str, input: Dict[str, Any], stream: bool) -> tuple[str, Dict[str, Any]]:
        """Pick the endpoint for ``owner/name`` or ``owner/name:version`` identifiers."""
        payload: Dict[str, Any] = {"input": input}
        if stream:
            payload["stream"] = True
        if ":" in model:
            _, version = model.split(":", 1)
            payload["version"] = version
            return "predictions", payload
        return f"models/{model}/predictions", payload

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteEngineError(f"Malformed response from model API: {e}", response.status_code) from e
        if not isinstance(data, dict):
            raise RemoteEngineError("Unexpected response shape from model API", response.status_code)
        return data

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        detail = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                detail = body.get("detail") or body.get("title") or ""
        except ValueError:
            detail = response.text[:200]
        raise RemoteEngineError(
            f"Model API returned {response.status_code}{': ' + detail if detail else ''}",
            response.status_code,
        )

    async def _create(self, client: httpx.AsyncClient, model: str, input: Dict[str, Any], stream: bool, wait: Optional[int]) -> Dict[str, Any]:
        endpoint, payload = self._create_request(model, input, stream)
        headers = {"Prefer": f"wait={wait}"} if wait else None
        logger.debug("Creating prediction on %s (stream=%s)", model, stream)
        response = await client.post(endpoint, json=payload, headers=headers)
        self._raise_for_status(response)
        return self._decode(response)

    async def predict(self, model: str, input: Dict[str, Any], timeout: float = 120.0) -> Any:
        """Run a prediction to completion and return its output."""
        deadline = time.monotonic() + timeout
        wait = prefer_wait_seconds(timeout)
        try:
            async with self._client(timeout) as client:
                prediction = await self._create(client, model, input, stream=False, wait=wait)
                while prediction.get("status") not in TERMINAL_STATUSES:
                    if time.monotonic() >= deadline:
                        raise RemoteEngineError(f"Prediction on {model} timed out after {timeout:.0f}s")
                    poll_url = (prediction.get("urls") or {}).get("get")
                    if not poll_url:
                        raise RemoteEngineError("Prediction is missing a status URL")
                    await asyncio.sleep(min(self.poll_interval, max(deadline - time.monotonic(), 0)))
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise RemoteEngineError(f"Prediction on {model} timed out after {timeout:.0f}s")
                    response = await client.get(poll_url, timeout=remaining)
                    self._raise_for_status(response)
                    prediction = self._decode(response)
        except httpx.TimeoutException as e:
            raise RemoteEngineError(f"Prediction on {model} timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise RemoteEngineError(f"Model API request failed: {e!r}") from e

        status = prediction.get("status")
        if status != "succeeded":
            raise RemoteEngineError(f"Prediction {status}: {prediction.get('error') or 'no detail'}")
        logger.debug("Prediction %s on %s succeeded", prediction.get("id"), model)
        return prediction.get("output")

    async def stream(self, model: str, input: Dict[str, Any], timeout: float = 60.0) -> AsyncIterator[str]:
        """Yield output tokens of a streaming prediction as they arrive."""
        try:
            async with self._client(timeout) as client:
                prediction = await self._create(client, model, input, stream=True, wait=None)
                stream_url = (prediction.get("urls") or {}).get("stream")
                if not stream_url:
                    raise RemoteEngineError(f"Model {model} does not support streaming")

                headers = {"Accept": "text/event-stream", "Cache-Control": "no-store"}
                async with client.stream("GET", stream_url, headers=headers) as response:
                    if not response.is_success:
                        await response.aread()
                        self._raise_for_status(response)

                    event = "message"
                    data_lines: list[str] = []
                    async for line in response.aiter_lines():
                        if line.startswith(":"):
                            continue
                        if line:
                            field_name, _, value = line.partition(":")
                            if value.startswith(" "):
                                value = value[1:]
                            if field_name == "event":
                                event = value
                            elif field_name == "data":
                                data_lines.append(value)
                            continue

                        # Blank line dispatches the pending event.
                        data = "\n".join(data_lines)
                        name = event
                        event, data_lines = "message", []
                        if name == "output":
                            yield data
                        elif name == "error":
                            raise RemoteEngineError(f"Prediction stream error: {_error_detail(data)}")
                        elif name == "done":
                            if _done_reason(data) == "canceled":
                                raise RemoteEngineError("Prediction was canceled")
                            return
                    raise RemoteEngineError("Prediction stream ended without a done event")
        except httpx.TimeoutException as e:
            raise RemoteEngineError(f"Prediction stream on {model} timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise RemoteEngineError(f"Model API stream failed: {e!r}") from e


def _error_detail(data: str) -> str:
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        return data or "no detail"
    if isinstance(parsed, dict):
        return str(parsed.get("detail") or parsed.get("error") or parsed)
    return str(parsed)


def _done_reason(data: str) -> str:
    try:
        parsed = json.loads(data) if data else {}
    except json.JSONDecodeError:
        return ""
    return parsed.get("reason", "") if isinstance(parsed, dict) else ""


def get_replicate_client() -> ReplicateClient:
    return ReplicateClient(
        settings.replicate_api_token,
        settings.replicate_base_url,
        poll_interval=settings.prediction_poll_interval_seconds,
    )
