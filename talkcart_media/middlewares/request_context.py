from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from talkcart_media.core import context


class RequestContextMiddleware:
    """Attach request_id and client address to context vars for log correlation."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(uuid4())
        client = scope.get("client")
        client_ip = client[0] if client else "-"

        context.set_request_id(request_id)
        context.set_client_ip(client_ip)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers_list = list(message.get("headers", []))
                headers_list.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers_list
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            context.clear_context()
