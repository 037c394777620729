"""
Stream frame decoder.

Turns the raw byte stream of a chat-completions response into an ordered
sequence of TextDelta / ToolCallDelta / StreamEnd events. Chunks may split
lines, JSON payloads and even multi-byte characters at arbitrary points;
the decoder re-buffers the incomplete tail of every chunk so the events it
yields do not depend on how the stream was chunked.
"""
import asyncio
import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterator, Optional, Union

from ..constants import SSE_DATA_PREFIX, SSE_DONE_SENTINEL
from ..errors import ProtocolAnomaly
from .cancellation import CancelToken
from .events import StreamEnd, StreamEvent, TextDelta, ToolCallDelta

logger = logging.getLogger(__name__)

_EOF = object()
_CANCELLED = object()
_DONE = object()


class StreamFrameDecoder:
    """Single-use decoder for one streamed response.

    Example:
        decoder = StreamFrameDecoder(response.aiter_bytes(), cancel_token)
        async for event in decoder:
            ...

    Malformed payload lines are skipped and counted in ``anomaly_count``;
    they never stop the stream. Once the cancel token fires, no further
    events are produced and any partially buffered frame is discarded.
    """

    def __init__(
        self,
        source: AsyncIterable[Union[bytes, str]],
        cancel_token: Optional[CancelToken] = None,
    ) -> None:
        self._source = source
        self._cancel_token = cancel_token
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._finish_reason: Optional[str] = None
        self._started = False
        self._read_task: Optional[asyncio.Future] = None
        self.anomaly_count = 0

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.events()

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield decoded events until the sentinel, EOF, or cancellation."""
        if self._started:
            raise RuntimeError("StreamFrameDecoder is single-use; create a new decoder per stream")
        self._started = True

        iterator = self._source.__aiter__()
        try:
            while True:
                chunk = await self._next_chunk(iterator)
                if chunk is _CANCELLED:
                    self._discard()
                    return

                if chunk is _EOF:
                    lines = [self._buffer + self._text_decoder.decode(b"", final=True)]
                    self._buffer = ""
                else:
                    self._buffer += self._decode(chunk)
                    lines = self._buffer.split("\n")
                    self._buffer = lines.pop()

                for line in lines:
                    if self._is_cancelled():
                        self._discard()
                        return
                    parsed = self._parse_line(line)
                    if parsed is _DONE:
                        yield StreamEnd(finish_reason=self._finish_reason)
                        return
                    for event in parsed:
                        if self._is_cancelled():
                            self._discard()
                            return
                        yield event

                if chunk is _EOF:
                    yield StreamEnd(finish_reason=self._finish_reason)
                    return
        finally:
            # The source cannot be closed while a read is still suspended inside it.
            await self._abort_read()
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _next_chunk(self, iterator: AsyncIterator[Any]) -> Any:
        """Await the next chunk, racing the cancel token."""
        if self._is_cancelled():
            return _CANCELLED
        if self._cancel_token is None:
            return await _read(iterator)

        read_task = asyncio.ensure_future(_read(iterator))
        self._read_task = read_task
        cancel_task = asyncio.ensure_future(self._cancel_token.wait())
        try:
            await asyncio.wait({read_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()

        if read_task.done() and not self._is_cancelled():
            self._read_task = None
            return read_task.result()

        await self._abort_read()
        return _CANCELLED

    async def _abort_read(self) -> None:
        """Cancel an in-flight read and wait for the source to unwind."""
        read_task = self._read_task
        if read_task is None:
            return
        read_task.cancel()
        await asyncio.gather(read_task, return_exceptions=True)
        self._read_task = None

    def _decode(self, chunk: Union[bytes, str]) -> str:
        if isinstance(chunk, str):
            return chunk
        return self._text_decoder.decode(chunk)

    def _is_cancelled(self) -> bool:
        return self._cancel_token is not None and self._cancel_token.cancelled

    def _discard(self) -> None:
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} buffered characters after cancellation")
        self._buffer = ""
        self._text_decoder.reset()

    def _parse_line(self, line: str) -> Any:
        """Parse one complete line into events, or return _DONE for the sentinel."""
        line = line.rstrip("\r")
        if not line.startswith(SSE_DATA_PREFIX):
            # Blank separators, ":" comments and other SSE fields carry no payload.
            return ()

        data = line[len(SSE_DATA_PREFIX):]
        if data.startswith(" "):
            data = data[1:]
        if data.strip() == SSE_DONE_SENTINEL:
            return _DONE

        try:
            payload = json.loads(data)
        except ValueError as e:
            self.anomaly_count += 1
            anomaly = ProtocolAnomaly(f"Unparseable frame payload: {e}")
            logger.debug(f"Skipping frame: {anomaly}")
            return ()

        return tuple(self._events_from_payload(payload))

    def _events_from_payload(self, payload: Any) -> Iterator[StreamEvent]:
        if not isinstance(payload, dict):
            return
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return
        choice = choices[0]
        if not isinstance(choice, dict):
            return

        finish_reason = choice.get("finish_reason")
        if isinstance(finish_reason, str) and finish_reason:
            self._finish_reason = finish_reason

        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return

        content = delta.get("content")
        if isinstance(content, str) and content:
            yield TextDelta(content=content)

        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for item in tool_calls:
                event = self._tool_call_delta(item)
                if event is not None:
                    yield event

    def _tool_call_delta(self, item: Any) -> Optional[ToolCallDelta]:
        if not isinstance(item, dict):
            return None
        index = item.get("index")
        if not isinstance(index, int) or isinstance(index, bool):
            self.anomaly_count += 1
            logger.debug(f"Skipping tool-call fragment without an integer index: {item!r}")
            return None

        function = item.get("function")
        if not isinstance(function, dict):
            function = {}
        name = function.get("name")
        arguments = function.get("arguments")
        call_id = item.get("id")

        name = name if isinstance(name, str) and name else None
        arguments = arguments if isinstance(arguments, str) and arguments else None
        call_id = call_id if isinstance(call_id, str) and call_id else None
        if name is None and arguments is None and call_id is None:
            return None
        return ToolCallDelta(index=index, name=name, arguments=arguments, call_id=call_id)


async def _read(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EOF
