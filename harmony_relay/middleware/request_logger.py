# harmony_relay/middleware/request_logger.py
import logging
import time
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("harmony.http")


class RequestLoggerMiddleware:
    """
    Logs every HTTP request with:
      - method, path, status, duration
      - X-Req-Id (from client) and X-Session-Id

    The body is left untouched so streaming requests and responses pass
    straight through. Duration of a streamed response covers the whole stream.
    """
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        rid = headers.get("x-req-id", "-")
        sid = headers.get("x-session-id", "-")
        method = scope.get("method", "-")
        path = scope.get("path", "-")
        start = time.time()
        status = {"code": 0}

        logger.info("[HTTP >] rid=%s sid=%s %s %s", rid, sid, method, path)

        async def send_wrapper(message: Message):
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dur_ms = (time.time() - start) * 1000
            logger.info("[HTTP <] rid=%s sid=%s %s %s status=%d done in %.1fms",
                        rid, sid, method, path, status["code"], dur_ms)
