"""
Ledgerline Events — Delivery Sinks
==================================
A sink is the single, fixed downstream destination for events (or
for task completion triggers).

Sink contract:
    publish(message: dict, timeout: float) -> None
    Raises on any delivery failure. Never retries.
"""

from __future__ import annotations

import json
from threading import Lock
from typing import Protocol
from urllib import error, request

from core.events.errors import EventDeliveryError


class EventSink(Protocol):
    def publish(self, message: dict, timeout: float) -> None:
        ...


class InMemoryEventSink:
    """Records every delivered message. Used by tests and local runs."""

    def __init__(self):
        self._messages: list[dict] = []
        self._lock = Lock()

    def publish(self, message: dict, timeout: float) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> list[dict]:
        with self._lock:
            return list(self._messages)

    def delivered_ids(self, key: str = "event_id") -> set[str]:
        with self._lock:
            return {m[key] for m in self._messages if key in m}


class NullEventSink:
    """Discards everything. Useful when no downstream is configured."""

    def publish(self, message: dict, timeout: float) -> None:
        return None


class WebhookEventSink:
    """
    POSTs each message as JSON to a fixed URL.

    A timeout or a non-2xx response is a delivery failure.
    """

    def __init__(self, url: str, headers: dict[str, str] | None = None):
        if not url:
            raise ValueError("WebhookEventSink requires a URL.")
        self._url = url
        self._headers = dict(headers or {})

    @property
    def url(self) -> str:
        return self._url

    def publish(self, message: dict, timeout: float) -> None:
        body = json.dumps(message, default=str).encode("utf-8")
        req_headers = dict(self._headers)
        req_headers["Content-Type"] = "application/json"
        req = request.Request(url=self._url, method="POST", headers=req_headers, data=body)
        try:
            with request.urlopen(req, timeout=timeout) as response:
                status = response.status
        except error.HTTPError as exc:
            raise EventDeliveryError(
                f"Sink {self._url} answered HTTP {exc.code}."
            ) from exc
        except (error.URLError, OSError) as exc:
            raise EventDeliveryError(f"Sink {self._url} unreachable: {exc}") from exc

        if not 200 <= status < 300:
            raise EventDeliveryError(f"Sink {self._url} answered HTTP {status}.")
