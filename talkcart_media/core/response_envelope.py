from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.types import ASGIApp, Message, Receive, Scope, Send


def _success_code(status_code: int) -> str:
    mapping = {
        200: "ok",
        201: "created",
        202: "accepted",
    }
    return mapping.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return "code" in payload and "message" in payload and ("data" in payload or "details" in payload)


def wrap_payload(payload: Any, status_code: int) -> dict[str, Any]:
    if _is_enveloped(payload):
        normalized = dict(payload)
        normalized.setdefault("data", None)
        normalized.setdefault("details", {})
        return normalized
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": payload,
        "details": {},
    }


class ResponseEnvelopeMiddleware:
    """Wrap successful JSON responses in ``{code, message, data, details}``.

    Binary responses (relay bodies, files) and error responses pass through untouched;
    errors are already enveloped by the exception handlers.
    """

    def __init__(self, app: ASGIApp, exclude_prefixes: tuple[str, ...] = ()) -> None:
        self.app = app
        self.exclude_prefixes = exclude_prefixes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path = scope.get("path", "")
        if scope["type"] != "http" or path.startswith(self.exclude_prefixes):
            await self.app(scope, receive, send)
            return

        start: Message | None = None
        chunks: list[bytes] = []

        async def send_enveloped(message: Message) -> None:
            nonlocal start
            if message["type"] == "http.response.start":
                headers = dict(message.get("headers", []))
                content_type = headers.get(b"content-type", b"").decode("latin-1")
                if 200 <= message["status"] < 300 and content_type.startswith("application/json"):
                    start = message
                    return
                await send(message)
                return

            if message["type"] != "http.response.body" or start is None:
                await send(message)
                return

            chunks.append(message.get("body", b""))
            if message.get("more_body", False):
                return

            raw = b"".join(chunks)
            try:
                payload = json.loads(raw) if raw else None
            except ValueError:
                body = raw
            else:
                body = json.dumps(wrap_payload(payload, start["status"])).encode("utf-8")
            headers = [
                (key, value)
                for key, value in start.get("headers", [])
                if key.lower() != b"content-length"
            ]
            headers.append((b"content-length", str(len(body)).encode("latin-1")))
            await send({**start, "headers": headers})
            await send({"type": "http.response.body", "body": body, "more_body": False})

        await self.app(scope, receive, send_enveloped)


def register_response_envelope(app, exclude_prefixes: tuple[str, ...] = ()) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware, exclude_prefixes=exclude_prefixes)
