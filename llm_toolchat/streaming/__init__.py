"""Streaming ingestion: frame decoding, tool-call assembly and cancellation."""
from .assembler import ToolCall, ToolCallAssembler, ToolCallFragment
from .cancellation import CancelReason, CancelToken
from .decoder import StreamFrameDecoder
from .events import StreamEnd, StreamEvent, TextDelta, ToolCallDelta

__all__ = [
    'StreamFrameDecoder',
    'ToolCall', 'ToolCallAssembler', 'ToolCallFragment',
    'CancelReason', 'CancelToken',
    'StreamEnd', 'StreamEvent', 'TextDelta', 'ToolCallDelta',
]
