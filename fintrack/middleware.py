# fintrack/middleware.py

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers

from .errors import error_body

TOO_LARGE = "Request body too large"


class BodySizeLimitMiddleware:
    """Reject request bodies over ``max_bytes`` with 413.

    A declared Content-Length is checked up front; bodies sent without one
    (chunked) are counted as they are read.
    """

    def __init__(self, app, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length and length.isdigit() and int(length) > self.max_bytes:
            response = JSONResponse(status_code=413, content=error_body(TOO_LARGE))
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    # surfaces through the app's HTTPException handler
                    raise HTTPException(status_code=413, detail=TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)
