"""
Property-based tests for the tool-call assembler.
"""
import json

import allure
from hypothesis import given, settings, strategies as st

from llm_toolchat.streaming import ToolCall, ToolCallAssembler, ToolCallDelta


@st.composite
def interleaved_calls(draw):
    """
    Generate N >= 2 tool calls, each split into argument pieces, and an
    arbitrary interleaving that keeps every call's own pieces in order.
    """
    count = draw(st.integers(min_value=2, max_value=5))
    calls = []
    for index in range(count):
        args = {
            "n": index,
            "text": draw(st.text(max_size=15)),
            "values": draw(st.lists(st.integers(), max_size=3)),
        }
        encoded = json.dumps(args)
        cuts = sorted(set(draw(st.lists(st.integers(min_value=1, max_value=len(encoded) - 1), max_size=6))))
        pieces = []
        start = 0
        for cut in cuts:
            pieces.append(encoded[start:cut])
            start = cut
        pieces.append(encoded[start:])

        deltas = [ToolCallDelta(index=index, name=f"tool_{index}", call_id=f"call_{index}")]
        deltas.extend(ToolCallDelta(index=index, arguments=piece) for piece in pieces)
        calls.append((index, args, deltas))

    slots = [index for index, _, deltas in calls for _ in deltas]
    order = draw(st.permutations(slots))

    positions = {index: 0 for index, _, _ in calls}
    stream = []
    for index in order:
        stream.append(calls[index][2][positions[index]])
        positions[index] += 1
    return calls, stream


@allure.feature("Tool Call Assembler")
@allure.story("Interleaved fragments complete exactly once")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=200)
@given(data=interleaved_calls())
def test_every_call_completes_once_regardless_of_interleaving(data):
    """
    For any interleaving of deltas for N distinct indices, exactly N calls
    are emitted, each once, and each only at the delta that delivered the
    last piece of its own arguments.
    """
    calls, stream = data
    assembler = ToolCallAssembler()
    remaining = {index: len(deltas) for index, _, deltas in calls}
    emitted: list[ToolCall] = []

    for delta in stream:
        remaining[delta.index] -= 1
        result = assembler.ingest(delta)
        if result is not None:
            assert result.index == delta.index
            assert remaining[delta.index] == 0, "call emitted before its arguments were complete"
            emitted.append(result)

    assert len(emitted) == len(calls)
    assert sorted(call.index for call in emitted) == [index for index, _, _ in calls]
    for call in emitted:
        _, args, _ = calls[call.index]
        assert call.args == args
        assert call.name == f"tool_{call.index}"
        assert call.id == f"call_{call.index}"

    assert assembler.completed == emitted
    assert assembler.pending == []
    assert assembler.finish() == []


@settings(max_examples=100)
@given(data=interleaved_calls())
def test_completion_order_follows_last_fragment_order(data):
    calls, stream = data
    last_seen = {}
    for position, delta in enumerate(stream):
        last_seen[delta.index] = position
    expected_order = sorted(last_seen, key=last_seen.get)

    assembler = ToolCallAssembler()
    for delta in stream:
        assembler.ingest(delta)

    assert [call.index for call in assembler.completed] == expected_order


def test_later_index_can_complete_first():
    assembler = ToolCallAssembler()

    assert assembler.ingest(ToolCallDelta(index=0, name="a", arguments='{"x": ')) is None
    done = assembler.ingest(ToolCallDelta(index=1, name="b", arguments='{"y": 2}'))
    assert done is not None and done.index == 1
    assert [fragment.index for fragment in assembler.pending] == [0]

    done = assembler.ingest(ToolCallDelta(index=0, arguments="1}"))
    assert done is not None and done.args == {"x": 1}
    assert [call.name for call in assembler.completed] == ["b", "a"]


@allure.feature("Tool Call Assembler")
@allure.story("Retired index is not resurrected")
@allure.severity(allure.severity_level.NORMAL)
def test_delta_for_retired_index_is_ignored():
    assembler = ToolCallAssembler()
    first = assembler.ingest(ToolCallDelta(index=0, name="calc", arguments="{}"))

    again = assembler.ingest(ToolCallDelta(index=0, name="calc", arguments="{}"))

    assert first is not None
    assert again is None
    assert assembler.completed == [first]
    assert assembler.pending == []
    assert assembler.anomaly_count == 1


def test_name_arriving_after_arguments_completes_the_call():
    assembler = ToolCallAssembler()

    assert assembler.ingest(ToolCallDelta(index=0, arguments='{"q": "x"}')) is None
    call = assembler.ingest(ToolCallDelta(index=0, name="read_note"))

    assert call is not None
    assert call.name == "read_note"
    assert call.args == {"q": "x"}
    assert call.id.startswith("call_")


def test_name_may_be_overwritten_before_completion():
    assembler = ToolCallAssembler()
    assembler.ingest(ToolCallDelta(index=0, name="draft", arguments='{"a"'))
    assembler.ingest(ToolCallDelta(index=0, name="final"))

    call = assembler.ingest(ToolCallDelta(index=0, arguments=": 1}"))

    assert call is not None and call.name == "final"


def test_scalar_prefix_is_not_a_complete_argument_value():
    assembler = ToolCallAssembler()

    assert assembler.ingest(ToolCallDelta(index=0, name="t", arguments="12")) is None
    assert assembler.ingest(ToolCallDelta(index=0, arguments="3")) is None

    leftovers = assembler.finish()

    assert [(fragment.index, fragment.args_buffer) for fragment in leftovers] == [(0, "123")]
    assert assembler.pending == []


def test_tool_call_renders_openai_format():
    call = ToolCall(id="call_1", name="calculate", args={"expression": "2+2"})

    assert call.to_openai_format() == {
        "id": "call_1",
        "type": "function",
        "function": {"name": "calculate", "arguments": '{"expression": "2+2"}'},
    }
