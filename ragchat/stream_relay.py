"""Relay of streamed chat completions to the caller.

The upstream speaks server-sent events: ``data: {json}`` lines carrying
OpenAI-style ``choices[0].delta.content`` fragments and a final
``data: [DONE]``. The relay forwards only the text fragments, as raw bytes,
and optionally ends with a sources footer.
"""
import codecs
import json
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, List, Optional

import structlog

logger = structlog.get_logger()

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"


class RelayState(str, Enum):
    READING = "reading"
    EMITTING = "emitting"
    DONE = "done"
    FAILED = "failed"


def extract_delta(event: object) -> str:
    """Return ``choices[0].delta.content`` from a decoded event, or ``""``."""
    if not isinstance(event, dict):
        return ""

    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""

    first = choices[0]
    if not isinstance(first, dict):
        return ""

    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""

    content = delta.get("content")
    return content if isinstance(content, str) else ""


def format_sources_footer(sources: List[str]) -> str:
    return f"\n\n[Sources: {', '.join(sources)}]"


class StreamRelay:
    """Turns an SSE byte stream into a plain byte stream of generated text.

    Bytes are buffered only until a line is complete; the trailing partial
    line is kept for the next chunk. Malformed events are logged and skipped.
    An upstream error or invalid UTF-8 marks the relay FAILED and is re-raised
    to the consumer.
    """

    def __init__(self, sources: Optional[List[str]] = None):
        self.sources = list(sources or [])
        self.state = RelayState.READING
        self.events_forwarded = 0
        self.events_skipped = 0

        # Invalid UTF-8 raises UnicodeDecodeError and fails the relay
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        """Consume one upstream chunk and return the text deltas it completes."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")

        deltas = []
        for line in lines:
            delta = self._process_line(line)
            if delta:
                deltas.append(delta)
        return deltas

    def _process_line(self, line: str) -> str:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return ""

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_TOKEN:
            logger.debug("stream_done_token_received")
            return ""

        try:
            event = json.loads(data)
        except json.JSONDecodeError as e:
            self.events_skipped += 1
            logger.warning("stream_event_parse_failed", error=str(e), data_preview=data[:100])
            return ""

        return extract_delta(event)

    def finish(self) -> Optional[str]:
        """Flush the decoder at end of stream and return the footer, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer.strip():
            logger.warning("stream_incomplete_event_discarded", data_preview=self._buffer[:100])
        self._buffer = ""

        if self.sources:
            return format_sources_footer(self.sources)
        return None

    async def relay(
        self,
        upstream: AsyncIterable[bytes],
        release: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> AsyncIterator[bytes]:
        """Yield generated text from ``upstream`` as UTF-8 bytes.

        Args:
            upstream: Raw SSE bytes from the completion provider
            release: Coroutine function closing the upstream reader; always awaited
        """
        try:
            async for chunk in upstream:
                self.state = RelayState.READING
                for delta in self.feed(chunk):
                    self.state = RelayState.EMITTING
                    self.events_forwarded += 1
                    yield delta.encode("utf-8")

            footer = self.finish()
            if footer:
                yield footer.encode("utf-8")

            self.state = RelayState.DONE
            logger.info(
                "stream_relay_completed",
                events_forwarded=self.events_forwarded,
                events_skipped=self.events_skipped,
                sources=len(self.sources),
            )

        except Exception as e:
            self.state = RelayState.FAILED
            logger.error("stream_relay_failed", error=str(e), error_type=type(e).__name__)
            raise

        finally:
            if self.state not in (RelayState.DONE, RelayState.FAILED):
                logger.info("stream_relay_cancelled", events_forwarded=self.events_forwarded)
            if release is not None:
                await release()
