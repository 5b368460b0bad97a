from starlette.types import ASGIApp, Message, Receive, Scope, Send


class SecurityHeadersMiddleware:
    """Apply safe default security headers to HTTP responses.

    Paths under ``cross_origin_prefixes`` serve media meant to be embedded by other
    origins, so they get a cross-origin resource policy instead of same-origin.
    """

    def __init__(
        self,
        app: ASGIApp,
        enable_hsts: bool = True,
        cross_origin_prefixes: tuple[str, ...] = (),
    ) -> None:
        self.app = app
        self.enable_hsts = enable_hsts
        self.cross_origin_prefixes = cross_origin_prefixes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        embeddable = scope.get("path", "").startswith(self.cross_origin_prefixes)

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                defaults: list[tuple[bytes, bytes]] = [
                    (b"x-content-type-options", b"nosniff"),
                    (b"x-frame-options", b"DENY"),
                    (b"referrer-policy", b"no-referrer"),
                    (b"x-xss-protection", b"0"),
                    (b"cross-origin-opener-policy", b"same-origin"),
                    (
                        b"cross-origin-resource-policy",
                        b"cross-origin" if embeddable else b"same-origin",
                    ),
                ]
                if self.enable_hsts:
                    defaults.append((
                        b"strict-transport-security",
                        b"max-age=63072000; includeSubDomains; preload",
                    ))

                existing_keys = {key.lower() for key, _ in message.get("headers", [])}
                new_headers = list(message.get("headers", []))
                for key, value in defaults:
                    if key not in existing_keys:
                        new_headers.append((key, value))
                message["headers"] = new_headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
