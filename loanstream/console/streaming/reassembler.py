"""SSE byte stream -> typed agent events.

The agent runtime streams ``data: <payload>`` lines.  A payload is JSON, but
it may arrive quote-wrapped (the whole event JSON-encoded a second time) and
one payload may hold several objects back to back with no separator::

    data: {"type":"agent_chunk",...}{"type":"agent_end",...}
    data: "{\\"type\\":\\"agent_start\\",...}"

Processing is a pipeline of small pieces, each usable on its own:

1. ``LineBuffer`` -- incremental UTF-8 decode, split on ``\\n``, keep the
   partial last line for the next read.
2. ``extract_frame`` -- keep ``data: `` lines, drop everything else.
3. ``normalize_payload`` -- unwrap one level of JSON string quoting.
4. ``split_objects`` -- brace-balanced scan that cuts concatenated objects
   apart and returns the incomplete tail.
5. ``parse_event`` -- typed event per object.

Malformed objects are skipped and an incomplete tail produces no event; none
of these surface as errors.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from loguru import logger

from loanstream.console.models.events import StreamEvent, parse_event

DATA_PREFIX = "data: "
DEFAULT_MAX_CARRY = 64 * 1024


# ---------------------------------------------------------------------------
# Line splitting
# ---------------------------------------------------------------------------


class LineBuffer:
    """Turns arbitrary byte slices into complete text lines."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Return the lines completed by *chunk*; the trailing partial line is kept."""
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> list[str]:
        """Return whatever is left once the transport has ended."""
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return tail.split("\n") if tail else []


def extract_frame(line: str) -> str | None:
    """Return the payload of a ``data: `` line, or None for any other line."""
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :].strip()
    return payload or None


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------


def normalize_payload(payload: str) -> str:
    """Unwrap a payload that was JSON-string-encoded once more upstream.

    Falls back to the raw payload when the quoting does not parse.
    """
    if len(payload) >= 2 and payload[0] == '"' and payload[-1] == '"':
        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError:
            return payload
        if isinstance(decoded, str):
            return decoded
    return payload


def _find_object_end(text: str) -> int:
    """Index one past the first brace-balanced object in *text*, or -1.

    Braces inside string literals do not count.  When that never balances
    (e.g. a fragment with an unpaired quote) plain brace counting decides,
    so a broken fragment cannot swallow the objects after it.
    """
    end = _string_aware_end(text)
    if end == -1:
        end = _plain_end(text)
    return end


def _string_aware_end(text: str) -> int:
    depth = 0
    opened = False
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and opened:
            in_string = True
        elif ch == "{":
            depth += 1
            opened = True
        elif ch == "}" and opened:
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def _plain_end(text: str) -> int:
    depth = 0
    for i, ch in enumerate(text):
        if ch == "{":
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def split_objects(text: str) -> tuple[list[dict[str, Any]], str]:
    """Split concatenated JSON objects.

    Returns the decoded objects in source order and the unconsumed tail (an
    object that never closed, or trailing text with no object in it).
    Text before an object's opening brace is skipped.  Candidates that fail
    to parse are dropped and scanning continues after them.
    """
    objects: list[dict[str, Any]] = []
    remaining = text.lstrip()
    while remaining:
        start = remaining.find("{")
        if start == -1:
            break
        if start:
            logger.debug("Skipping {} stray characters before stream object", start)
            remaining = remaining[start:]

        end = _find_object_end(remaining)
        if end == -1:
            break

        candidate = remaining[:end]
        remaining = remaining[end:].lstrip()
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed stream object: {} ({!r:.80})", e, candidate)
            continue
        if isinstance(obj, dict):
            objects.append(obj)
    return objects, remaining


# ---------------------------------------------------------------------------
# Reassembler
# ---------------------------------------------------------------------------


class StreamReassembler:
    """Incremental parser for one agent stream.

    Feed transport reads in order with ``feed`` and call ``close`` once the
    transport ends.  Both return the events completed by that call, in
    arrival order.

    With ``carry_partial=False`` (the default) an object left open at the
    end of a ``data:`` frame is dropped.  With ``carry_partial=True`` the open
    tail is prefixed to the next frame's payload, so an object the upstream
    split across frames is still delivered.  The carried text is capped at
    ``max_carry`` characters.
    """

    def __init__(self, *, carry_partial: bool = False, max_carry: int = DEFAULT_MAX_CARRY) -> None:
        self._lines = LineBuffer()
        self._carry_partial = carry_partial
        self._max_carry = max_carry
        self._carry = ""

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in self._lines.feed(chunk):
            events.extend(self._process_line(line))
        return events

    def close(self) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in self._lines.flush():
            events.extend(self._process_line(line))
        if self._carry:
            logger.warning("Stream ended inside an object; dropping {} carried characters", len(self._carry))
            self._carry = ""
        return events

    def process_frame(self, payload: str) -> list[StreamEvent]:
        """Turn one frame payload (``data: `` already removed) into events."""
        text = normalize_payload(payload)
        carried, self._carry = self._carry, ""

        objects, tail = split_objects(carried + text)
        if carried and not objects:
            # An unclosed carry never holds back a frame that parses on its own.
            fresh, fresh_tail = split_objects(text)
            if fresh:
                logger.debug("Dropping {} carried characters that never closed", len(carried))
                objects, tail = fresh, fresh_tail
        if tail:
            self._keep_tail(tail)
        return [parse_event(obj) for obj in objects]

    def _process_line(self, line: str) -> list[StreamEvent]:
        payload = extract_frame(line)
        if payload is None:
            return []
        return self.process_frame(payload)

    def _keep_tail(self, tail: str) -> None:
        start = tail.find("{")
        if not self._carry_partial or start == -1:
            logger.debug("Discarding incomplete stream object ({} chars)", len(tail))
            return
        carried = tail[start:]
        if len(carried) > self._max_carry:
            logger.warning("Incomplete stream object exceeds {} characters; discarding", self._max_carry)
            return
        self._carry = carried


async def reassemble(
    chunks: AsyncIterable[bytes],
    *,
    carry_partial: bool = False,
) -> AsyncIterator[StreamEvent]:
    """Lazily yield events from an async byte stream."""
    reassembler = StreamReassembler(carry_partial=carry_partial)
    async for chunk in chunks:
        for event in reassembler.feed(chunk):
            yield event
    for event in reassembler.close():
        yield event
