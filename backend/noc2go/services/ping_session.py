"""Live ping sessions streamed to the browser as Server-Sent Events."""

import json
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable

from starlette.requests import Request
from starlette.responses import StreamingResponse

from noc2go.core.errors import StreamUnsupported
from noc2go.schemas.network import PingReplyEvent, PingRequest, PingSummaryEvent
from noc2go.services.ping_dialects import PingDialect
from noc2go.services.ping_launcher import PingProcess, ResolvedTarget, build_command, start_process
from noc2go.services.ping_parser import ParsedLine, PingOutputParser, aggregate

logger = logging.getLogger(__name__)

Spawner = Callable[[list[str], str], Awaitable[PingProcess]]
DisconnectCheck = Callable[[], Awaitable[bool]]
PingEvent = PingReplyEvent | PingSummaryEvent


def ensure_streaming_supported(request: Request) -> None:
    """Raise :class:`StreamUnsupported` unless the client can take an event stream."""
    if request.scope.get("http_version") == "1.0":
        raise StreamUnsupported("HTTP/1.0 connections cannot receive streamed events")
    accept = request.headers.get("accept")
    if accept and not any(t in accept for t in ("text/event-stream", "text/*", "*/*")):
        raise StreamUnsupported("client does not accept text/event-stream")


class PingSession:
    """One ping run: one process, one parser, one output stream.

    Reply events are produced in the order their lines arrive. The summary
    is produced once, after the process has exited. If the consumer goes
    away first the process is killed.
    """

    def __init__(
        self,
        target: ResolvedTarget,
        options: PingRequest,
        dialect: PingDialect,
        *,
        binary: str = "ping",
        spawn: Spawner = start_process,
    ):
        self.target = target
        self.options = options
        self.dialect = dialect
        self.binary = binary
        self.parser = PingOutputParser(dialect)
        self.process: PingProcess | None = None
        self._spawn = spawn

    @property
    def argv(self) -> list[str]:
        return build_command(self.dialect, self.target, self.options, self.binary)

    async def start(self) -> PingProcess:
        if self.process is None:
            self.process = await self._spawn(self.argv, self.dialect.encoding)
        return self.process

    def close(self) -> None:
        if self.process is not None and self.process.running:
            self.process.kill()
            logger.info("Ping stopped | pid=%s ip=%s", self.process.pid, self.target.address)

    def _reply(self, parsed: ParsedLine) -> PingReplyEvent:
        return PingReplyEvent(
            seq=parsed.seq,
            ttl=parsed.ttl,
            time=parsed.rtt_ms,
            status=parsed.kind.value,
            timestamp=datetime.now(timezone.utc).isoformat(),
            ip=self.target.address,
            detail=parsed.detail,
        )

    async def events(self, is_disconnected: DisconnectCheck | None = None) -> AsyncIterator[PingEvent]:
        process = await self.start()
        try:
            async for line in process.lines():
                parsed = self.parser.feed(line)
                if parsed is None:
                    continue
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Ping client disconnected | pid=%s", process.pid)
                    return
                yield self._reply(parsed)

            returncode = await process.wait()
            summary = aggregate(self.parser.unclassified, self.dialect)
            logger.info(
                "Ping finished | ip=%s rc=%s sent=%d recv=%d loss=%.1f%%",
                self.target.address, returncode, summary.sent, summary.recv, summary.loss,
            )
            yield summary
        finally:
            self.close()


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class SseStream:
    """SSE frames for one session.

    Unlike a bare async generator, closing this stream stops the ping process even
    when no frame was ever requested.
    """

    def __init__(self, session: PingSession, is_disconnected: DisconnectCheck | None = None):
        self.session = session
        self._events = session.events(is_disconnected)

    def __aiter__(self) -> "SseStream":
        return self

    async def __anext__(self) -> str:
        event = await self._events.__anext__()
        name = "summary" if isinstance(event, PingSummaryEvent) else "reply"
        return _sse(name, event.model_dump())

    async def aclose(self) -> None:
        try:
            await self._events.aclose()
        finally:
            self.session.close()


def sse_stream(session: PingSession, is_disconnected: DisconnectCheck | None = None) -> SseStream:
    return SseStream(session, is_disconnected)


class PingStreamResponse(StreamingResponse):
    """Event-stream response that closes its stream however the response ends."""

    def __init__(self, stream: SseStream):
        super().__init__(
            stream,
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
        self.stream = stream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.stream.aclose()
