"""Test helpers: in-process collaborators and rule builders."""

import asyncio
import json
from typing import Any

import httpx


class FakeMailTransport:
    """Mail transport keeping sent messages in memory."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def send(self, *, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})


class WebhookRecorder:
    """Webhook endpoint backed by httpx.MockTransport.

    Answers with the queued status codes in order, then with
    ``default_status``. Every request is recorded with its parsed body.
    """

    def __init__(self, default_status: int = 200) -> None:
        self.default_status = default_status
        self.statuses: list[int] = []
        self.requests: list[httpx.Request] = []
        self.delay: float = 0.0
        self.transport = httpx.MockTransport(self._handle)

    def respond_with(self, *statuses: int) -> None:
        self.statuses.extend(statuses)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        status_code = self.statuses.pop(0) if self.statuses else self.default_status
        return httpx.Response(status_code, json={"received": True})

    @property
    def calls(self) -> int:
        return len(self.requests)

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


def rule_definition(
    tenant_id=None,
    event_type: str = "ORDER_PLACED",
    conditions: dict[str, Any] | None = None,
    actions: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a valid rule definition, tenant scoped unless tenant_id is None."""
    definition: dict[str, Any] = {
        "name": "Test Rule",
        "description": "Rule created by tests",
        "scope": "TENANT" if tenant_id else "GLOBAL",
        "tenant_id": tenant_id,
        "trigger": {"event_type": event_type, "conditions": conditions or {}},
        "actions": actions
        if actions is not None
        else [{"type": "SEND_NOTIFICATION", "config": {"title": "Hello", "message": "World"}}],
        "priority": 1,
        "is_active": True,
    }
    definition.update(overrides)
    return definition


def webhook_action(url: str = "https://hooks.example.com/orders", **config: Any) -> dict[str, Any]:
    return {"type": "TRIGGER_WEBHOOK", "config": {"url": url, **config}}
