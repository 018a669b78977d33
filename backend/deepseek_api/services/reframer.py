"""Re-framing of Workers AI event streams into ``chat.completion.chunk`` events.

Workers AI streams server-sent events of the form
``data: {"response": "...", "p": "..."}`` followed by ``data: [DONE]``.
Transport chunks do not line up with those events, so by default bytes are
accumulated and split on the blank line that terminates each SSE frame. With
buffering disabled every delivered chunk is treated as one event, which is
how the service originally behaved.

Whatever upstream sends, a stream produced here ends with a chunk whose
``finish_reason`` is ``"stop"`` followed by exactly one ``data: [DONE]``.
"""

import asyncio
import codecs
import json
import re
import time
from typing import AsyncIterator, Iterable, List, Optional

import httpx

from deepseek_api.core.logging import setup_logger
from deepseek_api.models.chat import ChatCompletionChunk, ChunkChoice

logger = setup_logger()

DATA_PREFIX = "data: "
DONE = "[DONE]"
DONE_EVENT = f"data: {DONE}\n\n"

_FRAME_SEPARATOR = re.compile(r"\r?\n\r?\n")
_RESPONSE_KEY = re.compile(r'"response"\s*:\s*"')
_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

def new_completion_id() -> str:
    return f"chatcmpl-{int(time.time() * 1000)}"

def extract_partial_response(payload: str) -> Optional[str]:
    """Decode the ``"response"`` string value of a possibly truncated JSON text.

    Returns ``None`` when the key is absent. A value cut off mid-string
    yields whatever was decoded up to the cut, and a dangling escape
    sequence is dropped.
    """
    match = _RESPONSE_KEY.search(payload)
    if match is None:
        return None

    out = []
    i = match.end()
    n = len(payload)
    while i < n:
        ch = payload[i]
        if ch == '"':
            break
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= n:
            break
        esc = payload[i + 1]
        if esc in _ESCAPES:
            out.append(_ESCAPES[esc])
            i += 2
            continue
        if esc != "u":
            # invalid escape, keep it literally
            out.append(esc)
            i += 2
            continue
        hex_digits = payload[i + 2:i + 6]
        if len(hex_digits) < 4:
            break
        try:
            code = int(hex_digits, 16)
        except ValueError:
            break
        i += 6
        if 0xD800 <= code <= 0xDBFF and payload[i:i + 2] == "\\u":
            try:
                low = int(payload[i + 2:i + 6], 16)
            except ValueError:
                low = None
            if low is not None and 0xDC00 <= low <= 0xDFFF:
                code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                i += 6
        out.append(chr(code))
    return "".join(out)

class SSEFrameBuffer:
    """Accumulates raw bytes and hands out complete SSE frames."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._pending += self._decoder.decode(chunk)
        parts = _FRAME_SEPARATOR.split(self._pending)
        self._pending = parts.pop()
        return parts

    def flush(self) -> Optional[str]:
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return tail or None

class CompletionStream:
    """Produces the chunk events of one streamed completion.

    ``id`` and ``created`` are fixed at construction and shared by every
    chunk this instance emits.
    """

    def __init__(self, model: str, completion_id: Optional[str] = None, created: Optional[int] = None):
        self.model = model
        self.id = completion_id or new_completion_id()
        self.created = created or int(time.time())
        self.done_sent = False
        self.stop_sent = False
        self.passthrough_end = "\n"

    def chunk_event(self, content: Optional[str], finish_reason: Optional[str] = None) -> str:
        delta = {} if content is None else {"content": content}
        chunk = ChatCompletionChunk(
            id=self.id,
            created=self.created,
            model=self.model,
            choices=[ChunkChoice(index=0, delta=delta, finish_reason=finish_reason)],
        )
        if finish_reason == "stop":
            self.stop_sent = True
        return f"data: {chunk.model_dump_json()}\n\n"

    def done_event(self) -> List[str]:
        if self.done_sent:
            return []
        events = []
        if not self.stop_sent:
            events.append(self.chunk_event(None, "stop"))
        self.done_sent = True
        events.append(DONE_EVENT)
        return events

    def process(self, text: str) -> List[str]:
        """Turn one upstream event (or delivered chunk) into output events."""
        if self.done_sent or not text.strip():
            return []

        if not text.startswith(DATA_PREFIX):
            return [text + self.passthrough_end]

        payload = text[len(DATA_PREFIX):].strip()
        if payload == DONE:
            return self.done_event()

        if not payload or payload == "{}" or ('"usage"' in payload and '"response"' not in payload):
            logger.debug(f"Skipping bookkeeping event: {payload[:200]}")
            return []

        try:
            parsed = json.loads(payload)
        except ValueError:
            return self._recover(payload)

        if not isinstance(parsed, dict) or "response" not in parsed:
            return []

        content = parsed["response"] or ""
        if not isinstance(content, str):
            content = json.dumps(content)
        return [self.chunk_event(content, "stop" if parsed.get("done") else None)]

    def _recover(self, payload: str) -> List[str]:
        logger.debug(f"Unparseable event, falling back to partial extraction: {payload[:200]}")
        content = extract_partial_response(payload)
        if content:
            return [self.chunk_event(content)]
        # keep the client connection warm instead of surfacing the parse error
        return [self.chunk_event("")]

    def _safe_process(self, text: str) -> List[str]:
        try:
            return self.process(text)
        except Exception as e:
            logger.error(f"Dropping malformed stream event: {str(e)}")
            return []

    async def reframe(self, chunks: AsyncIterator[bytes], buffered: bool = True) -> AsyncIterator[str]:
        """Re-frame an upstream byte stream into chunk events."""
        buffer = SSEFrameBuffer() if buffered else None
        # SSEFrameBuffer strips the blank line that ends each frame
        self.passthrough_end = "\n\n" if buffered else "\n"
        try:
            async for chunk in chunks:
                if isinstance(chunk, str):
                    chunk = chunk.encode("utf-8")
                if buffer is not None:
                    units: Iterable[str] = buffer.feed(chunk)
                else:
                    units = [chunk.decode("utf-8", errors="replace")]
                for unit in units:
                    for event in self._safe_process(unit):
                        yield event
                if self.done_sent:
                    break
            if buffer is not None and not self.done_sent:
                tail = buffer.flush()
                if tail:
                    for event in self._safe_process(tail):
                        yield event
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.error(f"Upstream stream interrupted: {str(e)}")
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        for event in self.done_event():
            yield event

    async def synthesize(self, text: str, chunk_size: int = 20, delay: float = 0.05) -> AsyncIterator[str]:
        """Emit an already complete text as fixed-size chunks."""
        for start in range(0, len(text), chunk_size):
            if start:
                await asyncio.sleep(delay)
            yield self.chunk_event(text[start:start + chunk_size])
        yield self.chunk_event(None, "stop")
        for event in self.done_event():
            yield event
