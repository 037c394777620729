"""
Chat orchestrator.

Drives one user send through its state machine:

    IDLE -> STREAMING -> [TOOL_DETECTED -> VALIDATING -> EXECUTING -> STREAMING]* -> FINALIZING -> IDLE

with CANCELLED / FAILED reachable from every non-terminal state. Only one
session is active at a time; a new send supersedes the previous one.
Every change to the message log is preceded by a check that the session
is still the current one.
"""
import asyncio
import json
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..config import AppConfig
from ..constants import SYSTEM_PROMPT
from ..errors import (
    ChatError,
    ErrorCategory,
    SessionCancelled,
    ToolExecutionError,
    ToolValidationError,
    ValidationError,
    report_error,
)
from ..history import Message, MessageLog
from ..llm import ChatRequest, ChatTransport
from ..streaming import (
    CancelReason,
    StreamEnd,
    StreamFrameDecoder,
    TextDelta,
    ToolCall,
    ToolCallAssembler,
    ToolCallDelta,
)
from ..tools import ToolGateway
from .continuation import ContinuationController
from .runtime import RuntimeStatus
from .session import OrchestrationSession, SessionState, is_valid_transition
from .summaries import summarize_tool_result

logger = logging.getLogger(__name__)

TransitionListener = Callable[[OrchestrationSession, SessionState, SessionState], None]


class ToolFailurePolicy(Enum):
    """What to do with the rest of a turn when one tool call fails."""
    ABORT_TURN = "abort_turn"
    SKIP_FAILED = "skip_failed"


class ChatOrchestrator:
    """
    Sequences streaming, tool validation, tool execution and continuation.

    Collaborators are injected: a ChatTransport for model rounds, a
    ToolGateway for tools, and the MessageLog the UI renders.
    """

    def __init__(
        self,
        transport: ChatTransport,
        gateway: ToolGateway,
        log: Optional[MessageLog] = None,
        config: Optional[AppConfig] = None,
        failure_policy: Optional[ToolFailurePolicy] = None,
    ) -> None:
        self._transport = transport
        self._gateway = gateway
        self._log = log if log is not None else MessageLog()
        self._config = config or AppConfig()
        self._failure_policy = failure_policy or ToolFailurePolicy(self._config.chat.tool_failure_policy)
        self._runtime = RuntimeStatus()
        self._session: Optional[OrchestrationSession] = None
        self._listeners: list[TransitionListener] = []
        self._abandoned_tasks: set[asyncio.Future] = set()

    @property
    def log(self) -> MessageLog:
        return self._log

    @property
    def transport(self) -> ChatTransport:
        return self._transport

    @property
    def gateway(self) -> ToolGateway:
        return self._gateway

    @property
    def runtime(self) -> RuntimeStatus:
        return self._runtime

    @property
    def current_session(self) -> Optional[OrchestrationSession]:
        return self._session

    @property
    def failure_policy(self) -> ToolFailurePolicy:
        return self._failure_policy

    def add_listener(self, listener: TransitionListener) -> None:
        """Call ``listener(session, old_state, new_state)`` on every transition."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def send(self, text: str, tool: Optional[str] = None) -> OrchestrationSession:
        """
        Run one user send to completion.

        Args:
            text: The user's message
            tool: Run this tool directly on the input instead of asking the model

        Returns:
            The finished session; check ``state`` and ``error``

        Raises:
            ValidationError: If the input is rejected before a session opens
            asyncio.CancelledError: If the calling task is cancelled; the
                session is marked cancelled first
        """
        content = self._check_input(text, direct=tool is not None)

        previous = self._session
        if previous is not None and not previous.finished:
            logger.info(f"Session {previous.id} superseded by a new send")
            previous.cancel_token.cancel(CancelReason.SUPERSEDED)
            self._finish_cancelled(previous)

        session = OrchestrationSession()
        self._session = session
        self._runtime.clear_error()
        logger.info(f"Session {session.id} started ({'tool ' + tool if tool else 'model'})")

        try:
            if tool is not None:
                await self._run_direct(session, content, tool)
            else:
                await self._run(session, content)
        except SessionCancelled:
            self._finish_cancelled(session)
        except ChatError as e:
            self._finish_failed(session, e)
        except asyncio.CancelledError:
            session.cancel_token.cancel(CancelReason.USER)
            self._finish_cancelled(session)
            raise
        except Exception as e:
            # Programming errors still leave the log consistent before propagating.
            self._finish_failed(session, ChatError(f"{type(e).__name__}: {e}", ErrorCategory.UNKNOWN))
            raise
        finally:
            if self._session is session:
                self._session = None

        logger.info(f"Session {session.id} ended: {session.outcome.value}")
        return session

    def stop(self, reason: CancelReason = CancelReason.USER) -> bool:
        """
        Cancel the active session.

        Args:
            reason: Reported cancellation reason

        Returns:
            True if a running session was signalled
        """
        session = self._session
        if session is None or session.finished:
            return False
        return session.cancel_token.cancel(reason)

    def _check_input(self, text: Any, direct: bool) -> str:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Message cannot be empty")
        content = text.strip()
        limit = self._config.chat.max_input_length
        if len(content) > limit:
            raise ValidationError(f"Message is too long ({len(content)} characters, maximum {limit})")
        if not direct and self._config.chat.require_api_key and not self._config.api_key:
            raise ValidationError("An API key is required. Set OPENAI_API_KEY or use --api-key.", field="api_key")
        return content

    async def _run(self, session: OrchestrationSession, content: str) -> None:
        self._start_exchange(session, content)
        session.context = self._log.get_context(self._config.chat.context_messages)
        controller = ContinuationController(self._config.chat.max_tool_continuations)

        while True:
            calls = await self._stream_turn(session)
            if not calls:
                break
            state = controller.get_state()
            if not state.can_continue:
                logger.warning(f"Session {session.id}: {state.warning_message}")
                break

            self._transition(session, SessionState.TOOL_DETECTED)
            results = await self._execute_tool_calls(session, calls, self._failure_policy)
            session.history.append({
                "role": "assistant",
                "content": session.accumulated_text or None,
                "tool_calls": [call.to_openai_format() for call in calls],
            })
            session.history.extend(results)
            controller.on_continuation()

        self._finalize(session)

    async def _run_direct(self, session: OrchestrationSession, content: str, tool_name: str) -> None:
        self._start_exchange(session, content)
        args = {"expression": content} if tool_name == "calculate" else {}
        call = ToolCall(id=f"call_{uuid.uuid4().hex[:24]}", name=tool_name, args=args)
        session.pending_tool_calls = [call]

        self._transition(session, SessionState.TOOL_DETECTED)
        await self._execute_tool_calls(session, [call], ToolFailurePolicy.ABORT_TURN)
        self._finalize(session)

    def _start_exchange(self, session: OrchestrationSession, content: str) -> None:
        self._log.add_message("user", content)
        message = self._log.add_message("assistant", "", streaming=True)
        session.assistant_message_id = message.id

    async def _stream_turn(self, session: OrchestrationSession) -> list[ToolCall]:
        """Run one transport round and return its completed tool calls."""
        session.turn_count += 1
        session.accumulated_text = ""
        session.pending_tool_calls = []
        self._transition(session, SessionState.STREAMING)

        request = self._build_request(session)
        assembler = ToolCallAssembler()
        timer = self._start_timer(session, self._config.chat.stream_timeout)
        self._runtime.start_streaming()
        try:
            await self._until_cancelled(session, self._consume_stream(session, request, assembler), drain=True)
        finally:
            _cancel_timer(timer)
            if self._session is session:
                self._runtime.stop_streaming()

        session.cancel_token.raise_if_cancelled()
        for fragment in assembler.finish():
            logger.debug(f"Session {session.id}: dropped unparseable tool call fragment #{fragment.index}")
        logger.debug(
            f"Session {session.id} turn {session.turn_count}: "
            f"{len(session.accumulated_text)} chars, {len(session.pending_tool_calls)} tool call(s)"
        )
        return list(session.pending_tool_calls)

    async def _consume_stream(
        self,
        session: OrchestrationSession,
        request: ChatRequest,
        assembler: ToolCallAssembler,
    ) -> None:
        async with self._transport.stream_chat(request) as body:
            decoder = StreamFrameDecoder(body, session.cancel_token)
            async for event in decoder:
                self._ensure_current(session)
                if isinstance(event, TextDelta):
                    session.accumulated_text += event.content
                    self._update_assistant(session, content=session.accumulated_text)
                elif isinstance(event, ToolCallDelta):
                    call = assembler.ingest(event)
                    if call is not None:
                        session.pending_tool_calls.append(call)
                elif isinstance(event, StreamEnd):
                    logger.debug(f"Session {session.id}: stream ended ({event.finish_reason or 'no finish reason'})")
            if decoder.anomaly_count:
                logger.debug(f"Session {session.id}: skipped {decoder.anomaly_count} malformed frame(s)")

    async def _execute_tool_calls(
        self,
        session: OrchestrationSession,
        calls: list[ToolCall],
        policy: ToolFailurePolicy,
    ) -> list[dict[str, Any]]:
        """
        Validate and execute calls in completion order.

        Args:
            session: The running session
            calls: Completed tool calls, in completion order
            policy: How to treat a failed call

        Returns:
            One ``tool`` role request message per call

        Raises:
            ToolValidationError: On a rejected call under ABORT_TURN
            ToolExecutionError: On a failed call under ABORT_TURN
            SessionCancelled: If the session was cancelled meanwhile
        """
        results: list[dict[str, Any]] = []
        for call in calls:
            self._transition(session, SessionState.VALIDATING)
            outcome = self._gateway.validate(call.name, call.args)
            session.cancel_token.raise_if_cancelled()
            if not outcome.ok:
                error = ToolValidationError(call.name, outcome.reason or "invalid arguments")
                if policy == ToolFailurePolicy.ABORT_TURN:
                    raise error
                results.append(self._record_tool_failure(session, call, error))
                continue

            self._transition(session, SessionState.EXECUTING)
            self._runtime.start_tool(call.name)
            timer = self._start_timer(session, self._config.chat.tool_timeout)
            try:
                result = await self._until_cancelled(session, self._gateway.execute(call.name, call.args))
            except ToolExecutionError as error:
                if policy == ToolFailurePolicy.ABORT_TURN:
                    raise
                results.append(self._record_tool_failure(session, call, error))
                continue
            finally:
                _cancel_timer(timer)
                if self._session is session:
                    self._runtime.complete_tool()

            results.append(self._record_tool_result(session, call, result))
        return results

    def _record_tool_result(self, session: OrchestrationSession, call: ToolCall, result: Any) -> dict[str, Any]:
        self._ensure_current(session)
        payload = json.dumps(result, default=str)
        self._log.add_message(
            "tool",
            payload,
            tool_name=call.name,
            metadata={"tool_call_id": call.id, "args": call.args, "result": result},
        )
        self._update_assistant(session, content=summarize_tool_result(call.name, result))
        session.executed_tool_calls.append(call)
        logger.info(f"Session {session.id}: tool {call.name} succeeded")
        return {"role": "tool", "tool_call_id": call.id, "content": payload}

    def _record_tool_failure(self, session: OrchestrationSession, call: ToolCall, error: ChatError) -> dict[str, Any]:
        """Log a skipped call and build the error result the model will see."""
        self._ensure_current(session)
        reason = getattr(error, "reason", str(error))
        payload = json.dumps({"error": reason})
        self._log.add_message(
            "tool",
            payload,
            tool_name=call.name,
            error=True,
            error_message=error.human_message,
            metadata={"tool_call_id": call.id, "args": call.args},
        )
        report_error(error, {"session": session.id, "tool": call.name, "policy": "skip_failed"})
        return {"role": "tool", "tool_call_id": call.id, "content": payload}

    def _finalize(self, session: OrchestrationSession) -> None:
        self._ensure_current(session)
        self._transition(session, SessionState.FINALIZING)
        message = self._assistant_message(session)
        final = session.accumulated_text or (message.content if message else "")
        self._update_assistant(session, content=final, streaming=False)
        self._transition(session, SessionState.IDLE)
        session.finished = True

    def _finish_cancelled(self, session: OrchestrationSession) -> None:
        if session.finished:
            return
        reason = session.cancel_token.reason or CancelReason.USER
        session.cancel_token.cancel(reason)
        session.error = SessionCancelled(reason)
        message = self._assistant_message(session)
        if message is not None:
            metadata = dict(message.metadata, cancelled=reason.value)
            self._log.update_message(message.id, streaming=False, metadata=metadata)
        if reason == CancelReason.TIMEOUT:
            self._runtime.set_error(session.error.human_message)
        self._runtime.stop_streaming()
        self._runtime.complete_tool()
        self._transition(session, SessionState.CANCELLED)
        session.finished = True

    def _finish_failed(self, session: OrchestrationSession, error: ChatError) -> None:
        if session.finished:
            return
        if session.cancel_token.cancelled:
            # The failure was a side effect of closing the stream.
            self._finish_cancelled(session)
            return
        session.error = error
        report_error(error, {"session": session.id, "state": session.state.value})
        message = self._assistant_message(session)
        if message is not None:
            self._log.update_message(
                message.id,
                error=True,
                error_message=error.human_message,
                streaming=False,
            )
        self._runtime.set_error(error.human_message)
        self._runtime.stop_streaming()
        self._runtime.complete_tool()
        self._transition(session, SessionState.FAILED)
        session.finished = True

    def _build_request(self, session: OrchestrationSession) -> ChatRequest:
        llm = self._config.llm
        tools = self._gateway.tool_schemas() if self._config.chat.tools_enabled else []
        return ChatRequest(
            messages=session.request_messages(),
            system_prompt=llm.system_prompt or SYSTEM_PROMPT,
            model=llm.model,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
            top_p=llm.top_p,
            tools=tools,
        )

    def _transition(self, session: OrchestrationSession, new_state: SessionState) -> None:
        old_state = session.state
        if session.finished or not is_valid_transition(old_state, new_state):
            raise RuntimeError(
                f"Invalid session transition {old_state.value} -> {new_state.value} (session {session.id})"
            )
        session.state = new_state
        logger.debug(f"Session {session.id}: {old_state.value} -> {new_state.value}")
        for listener in list(self._listeners):
            listener(session, old_state, new_state)

    def _ensure_current(self, session: OrchestrationSession) -> None:
        """Raise SessionCancelled unless ``session`` may still touch the log."""
        session.cancel_token.raise_if_cancelled()
        if self._session is not session or session.finished:
            raise SessionCancelled(CancelReason.SUPERSEDED)

    def _assistant_message(self, session: OrchestrationSession) -> Optional[Message]:
        if session.assistant_message_id is None:
            return None
        return self._log.get(session.assistant_message_id)

    def _update_assistant(self, session: OrchestrationSession, **changes: Any) -> None:
        if session.assistant_message_id is not None:
            self._log.update_message(session.assistant_message_id, **changes)

    def _start_timer(self, session: OrchestrationSession, timeout: Optional[float]) -> Optional[asyncio.TimerHandle]:
        if not timeout or timeout <= 0:
            return None
        loop = asyncio.get_running_loop()
        return loop.call_later(timeout, session.cancel_token.cancel, CancelReason.TIMEOUT)

    async def _until_cancelled(
        self,
        session: OrchestrationSession,
        awaitable: Awaitable[Any],
        drain: bool = False,
    ) -> Any:
        """
        Await ``awaitable`` unless the session's token fires first.

        Args:
            session: Session whose token is raced
            awaitable: Work to run
            drain: Wait for the work to finish unwinding after cancelling it

        Returns:
            The awaitable's result

        Raises:
            SessionCancelled: If the token fired; a late result is discarded
        """
        token = session.cancel_token
        task = asyncio.ensure_future(awaitable)
        if token.cancelled:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            token.raise_if_cancelled()

        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            if drain:
                await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if task.done() and not token.cancelled:
            return task.result()

        task.cancel()
        if drain or task.done():
            await asyncio.gather(task, return_exceptions=True)
        else:
            # Work that ignores cancellation may finish later; its result is dropped.
            self._abandoned_tasks.add(task)
            task.add_done_callback(self._reap_abandoned)
        token.raise_if_cancelled()

    def _reap_abandoned(self, task: asyncio.Future) -> None:
        self._abandoned_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Discarded failure of abandoned work: {task.exception()!r}")


def _cancel_timer(timer: Optional[asyncio.TimerHandle]) -> None:
    if timer is not None:
        timer.cancel()
