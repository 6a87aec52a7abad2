"""
gcplog — Response Interceptor
===============================

What:  Wraps the ASGI `send` callable of one request to record the status
       code, the response size and a capped copy of the body.
How:   Every message is forwarded to the real `send` unchanged, so the client
       sees exactly what the application sent. The interceptor is owned by a
       single request and is never shared.

ASGI mapping:
    http.response.start  → set_status(status, headers)   (first call only)
    http.response.body   → write(body, more_body)
    anything else        → forwarded untouched
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from starlette.types import Message, Send

RawHeaders = Iterable[Tuple[bytes, bytes]]


def encoded_header_size(headers: RawHeaders) -> int:
    """Length of the headers encoded as `Name: value\\r\\n` lines."""
    return sum(len(name) + len(value) + 4 for name, value in headers)


@dataclass(frozen=True)
class CapturedResponse:
    """Read-only snapshot of what an interceptor observed."""

    status: int = 0
    size: int = 0
    body: bytes = b""
    body_truncated: bool = False
    header_committed: bool = False

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class ResponseInterceptor:
    """
    Records status, size and body of one response while forwarding it.

    Args:
        send:               The downstream ASGI send callable.
        max_body_bytes:     Cap on the mirrored body; 0 disables mirroring.
        count_header_bytes: Add encoded header length to size() when the
                            status is committed.
    """

    def __init__(self, send: Send, max_body_bytes: int = 8192, count_header_bytes: bool = True):
        self._send = send
        self._max_body_bytes = max_body_bytes
        self._count_header_bytes = count_header_bytes
        self._body = bytearray()
        self._status = 0
        self._size = 0
        self.header_committed = False
        self.body_complete = False
        self.body_truncated = False

    async def __call__(self, message: Message) -> None:
        kind = message["type"]
        if kind == "http.response.start":
            await self.set_status(message["status"], message.get("headers", []), message)
        elif kind == "http.response.body":
            await self.write(message.get("body", b""), message.get("more_body", False), message)
        else:
            await self._send(message)

    async def set_status(self, status: int, headers: RawHeaders = (), message: Optional[Message] = None) -> None:
        """Commit the status line. Only the first call has any effect."""
        if self.header_committed:
            return
        headers = list(headers)
        self._status = status
        if self._count_header_bytes:
            self._size += encoded_header_size(headers)
        if message is None:
            message = {"type": "http.response.start", "status": status, "headers": headers}
        await self._send(message)
        self.header_committed = True

    async def write(self, body: bytes, more_body: bool = False, message: Optional[Message] = None) -> None:
        """Mirror and forward a body chunk. Errors from `send` propagate."""
        if body and self._max_body_bytes:
            room = self._max_body_bytes - len(self._body)
            if room > 0:
                self._body.extend(body[:room])
            if len(body) > max(room, 0):
                self.body_truncated = True
        self._size += len(body)
        if message is None:
            message = {"type": "http.response.body", "body": body, "more_body": more_body}
        await self._send(message)
        if not more_body:
            self.body_complete = True

    def status(self) -> int:
        return self._status

    def size(self) -> int:
        return self._size

    def body(self) -> bytes:
        return bytes(self._body)

    def captured(self) -> CapturedResponse:
        return CapturedResponse(
            status=self._status,
            size=self._size,
            body=self.body(),
            body_truncated=self.body_truncated,
            header_committed=self.header_committed,
        )
