"""Line classifier and summary aggregator for ``ping`` output."""

import enum
from dataclasses import dataclass
from typing import Iterable

from noc2go.schemas.network import PingSummaryEvent
from noc2go.services.ping_dialects import PingDialect


class LineKind(str, enum.Enum):
    REPLY = "received"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    FAILURE = "failure"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ParsedLine:
    kind: LineKind
    seq: int = 0
    ttl: int = 0
    rtt_ms: float | None = None
    detail: str | None = None

    @property
    def is_event(self) -> bool:
        return self.kind is not LineKind.UNCLASSIFIED


def _to_int(value: str | None) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        return 0


def _to_float(value: str | None) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


def _first_match(patterns, line: str):
    for pattern in patterns:
        m = pattern.search(line)
        if m:
            return m
    return None


class PingOutputParser:
    """Classifies ping output one line at a time.

    One parser belongs to one ping session. Besides the list of
    unclassified lines kept for the summary, its only state is the last
    sequence number seen, used to number lines that carry none.
    """

    def __init__(self, dialect: PingDialect):
        self.dialect = dialect
        self.unclassified: list[str] = []
        self._last_seq = 0

    def _sequence(self, groups: dict) -> int:
        if groups.get("seq") is not None:
            self._last_seq = _to_int(groups["seq"])
        else:
            self._last_seq += 1
        return self._last_seq

    def classify(self, line: str) -> ParsedLine:
        text = line.strip()
        if not text:
            return ParsedLine(LineKind.UNCLASSIFIED)

        m = _first_match(self.dialect.reply, text)
        if m:
            groups = m.groupdict()
            return ParsedLine(
                LineKind.REPLY,
                seq=self._sequence(groups),
                ttl=_to_int(groups.get("ttl")),
                rtt_ms=_to_float(groups.get("rtt")),
            )

        for kind, patterns in (
            (LineKind.UNREACHABLE, self.dialect.unreachable),
            (LineKind.TIMEOUT, self.dialect.timeout),
        ):
            m = _first_match(patterns, text)
            if m:
                return ParsedLine(kind, seq=self._sequence(m.groupdict()), detail=text)

        m = _first_match(self.dialect.failure, text)
        if m:
            return ParsedLine(LineKind.FAILURE, seq=self._last_seq, detail=m.groupdict().get("detail") or text)

        return ParsedLine(LineKind.UNCLASSIFIED)

    def feed(self, line: str) -> ParsedLine | None:
        """Classify ``line``; unclassified lines are kept for :func:`aggregate`."""
        parsed = self.classify(line)
        if parsed.is_event:
            return parsed
        if line.strip():
            self.unclassified.append(line)
        return None


def aggregate(lines: Iterable[str], dialect: PingDialect) -> PingSummaryEvent:
    """Best-effort statistics from the tool's closing summary block.

    Fields whose line is missing or does not parse stay at zero.
    """
    counts = None
    rtt = None
    for line in lines:
        if counts is None:
            counts = _first_match(dialect.packets, line)
        if rtt is None:
            rtt = _first_match(dialect.rtt, line)
        if counts is not None and rtt is not None:
            break

    summary = PingSummaryEvent()
    if counts is not None:
        summary.sent = _to_int(counts.group("sent"))
        summary.recv = _to_int(counts.group("recv"))
        summary.loss = _to_float(counts.group("loss"))
    if rtt is not None:
        summary.min = _to_float(rtt.group("min"))
        summary.avg = _to_float(rtt.group("avg"))
        summary.max = _to_float(rtt.group("max"))
    return summary
