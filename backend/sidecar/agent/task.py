"""
Task orchestrator: the bounded reason -> act -> observe loop

One Task handles one user request. Each iteration opens a single model
stream, parses it into content blocks, then executes the tool invocations
sequentially in emission order. The loop ends when the completion tool
runs, the model returns nothing, the task is cancelled, or the iteration
cap is reached.
"""

import asyncio
import logging
import random
import string
import time
from typing import Dict, List, Optional

from ..config import AgentSettings
from ..core.errors import LoopLimitExceeded
from ..core.events import Event, EventChannel, EventType
from .diff_tracker import TaskDiffTracker
from .llm.base import BaseLLMClient
from .models import TaskState, TokenUsage, ToolResult, Turn, TurnRole
from .parser import AssistantMessageParser
from .prompts import (
    COMPLETION_TOOL_NAME,
    build_system_prompt,
    format_tool_result,
    format_user_message,
    loop_limit_notice,
    no_tools_used,
)
from .recovery import RecoveryPolicy
from .streaming import StreamResult, stream_assistant_response
from .tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)


def generate_task_id() -> str:
    alphabet = string.ascii_lowercase + string.digits
    return f"task-{int(time.time() * 1000)}-{''.join(random.choice(alphabet) for _ in range(7))}"


class Task:
    """
    Execution context of one user request.

    States move idle -> running <-> executing_tools -> completed | cancelled
    | failed; terminal states are absorbing and are entered exactly once.
    """

    def __init__(
        self,
        message: str,
        llm: BaseLLMClient,
        dispatcher: ToolDispatcher,
        events: EventChannel[Event],
        settings: Optional[AgentSettings] = None,
        max_loop_count: Optional[int] = None,
        recovery: Optional[RecoveryPolicy] = None,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        context_window_tokens: Optional[int] = None,
        task_id: Optional[str] = None,
    ):
        self.id = task_id or generate_task_id()
        self.message = message
        self.llm = llm
        self.dispatcher = dispatcher
        self.events = events
        self.settings = settings or AgentSettings()
        self.max_loop_count = max_loop_count or self.settings.advanced.max_loop_count
        self.recovery = recovery or RecoveryPolicy()
        self.context = context
        self.context_window_tokens = context_window_tokens
        self._system_prompt = system_prompt

        self.state = TaskState.IDLE
        self.loop_count = 0
        self.history: List[Turn] = []
        self.usage = TokenUsage()
        self.error: Optional[str] = None
        self.is_cancelled = False
        self.diff_tracker = TaskDiffTracker(self.id)
        self.done = asyncio.Event()

    @property
    def is_completed(self) -> bool:
        return self.state.is_terminal

    @property
    def system_prompt(self) -> str:
        if self._system_prompt is None:
            self._system_prompt = build_system_prompt(self.dispatcher.all())
        return self._system_prompt

    # -----------------------------
    # Public API
    # -----------------------------

    async def start(self) -> TaskState:
        """Run the loop to a terminal state; never raises"""
        if self.state is not TaskState.IDLE:
            logger.warning(f"[Task {self.id}] start() called in state {self.state.value}")
            return self.state

        self.state = TaskState.RUNNING
        self.history.append(Turn(TurnRole.USER, format_user_message(self.message, self.context)))
        logger.info(f"[Task {self.id}] Started (max_loop_count={self.max_loop_count})")

        try:
            await self._run_loop()
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as e:
            logger.exception(f"[Task {self.id}] Unexpected error in loop: {e}")
            self._publish_error(f"Task failed: {e}")
            self.error = str(e)
            self._finish(TaskState.FAILED)
        return self.state

    def cancel(self) -> None:
        """Request termination; a second call is a no-op"""
        if self.is_cancelled:
            return
        self.is_cancelled = True
        logger.info(f"[Task {self.id}] Cancelled at loop {self.loop_count}")
        self._finish(TaskState.CANCELLED)

    async def wait(self) -> TaskState:
        await self.done.wait()
        return self.state

    # -----------------------------
    # Loop
    # -----------------------------

    async def _run_loop(self) -> None:
        while True:
            if self.is_cancelled:
                logger.debug(f"[Task {self.id}] Cancelled before loop {self.loop_count + 1}")
                return

            if self.loop_count >= self.max_loop_count:
                self._publish_error(loop_limit_notice(self.max_loop_count))
                self.error = str(LoopLimitExceeded(self.max_loop_count))
                self._finish(TaskState.COMPLETED)
                return

            self.loop_count += 1
            self.state = TaskState.RUNNING
            result = await self._run_model_turn()
            if result is None or result.cancelled or self.is_cancelled:
                return

            tool_calls = result.tool_calls
            if not tool_calls:
                if result.assistant_message.strip():
                    logger.debug(f"[Task {self.id}] No tool calls found, prompting to use tools")
                    self.history.append(Turn(TurnRole.ASSISTANT, result.assistant_message))
                    self.history.append(Turn(TurnRole.USER, no_tools_used()))
                    continue
                logger.debug(f"[Task {self.id}] Empty response, ending loop")
                self._finish(TaskState.COMPLETED)
                return

            assistant_turn = Turn(TurnRole.ASSISTANT, result.assistant_message, tool_calls=tool_calls)
            self.history.append(assistant_turn)
            has_completion = any(call.name == COMPLETION_TOOL_NAME for call in tool_calls)

            self.state = TaskState.EXECUTING_TOOLS
            for call in tool_calls:
                if self.is_cancelled:
                    logger.debug(f"[Task {self.id}] Cancelled before executing {call.name}")
                    return
                logger.debug(f"[Task {self.id}] Executing tool: {call.name}")
                tool_result = await self.dispatcher.execute(call)
                if self.is_cancelled:
                    logger.debug(f"[Task {self.id}] Cancelled while {call.name} was running, dropping its result")
                    return
                self._record_tool_result(assistant_turn, tool_result)

            if self.is_cancelled:
                return
            if has_completion:
                logger.debug(f"[Task {self.id}] Task completion requested, ending loop")
                self._finish(TaskState.COMPLETED)
                return

    async def _run_model_turn(self) -> Optional[StreamResult]:
        """One model call, retried per the recovery policy; None once the task is over"""
        attempt = 0
        while True:
            parser = AssistantMessageParser(self.dispatcher.get_tool_names(), self.dispatcher.get_parameter_names())
            try:
                stream = self.llm.stream_chat(
                    messages=self._build_messages(),
                    system_prompt=self.system_prompt,
                )
                result = await stream_assistant_response(
                    stream,
                    parser,
                    is_cancelled=lambda: self.is_cancelled,
                    task_id=self.id,
                    loop_count=self.loop_count,
                    events=self.events,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                decision = self.recovery.decide(e, attempt)
                self._publish_error(decision.message)
                if decision.retry and not self.is_cancelled:
                    attempt += 1
                    await asyncio.sleep(decision.delay)
                    if self.is_cancelled:
                        return None
                    continue
                # a failed model turn still ends the task cleanly
                self.error = decision.message
                self._finish(TaskState.COMPLETED)
                return None

            if result.usage is not None:
                self._publish_token_usage(result.usage)
            return result

    def _build_messages(self) -> List[Dict[str, str]]:
        turns = self.history
        window = self.settings.advanced.context_window_size
        if window and len(turns) > window:
            # the first turn (the user request) always stays in the window
            turns = [turns[0], *turns[-(window - 1):]] if window > 1 else [turns[0]]
        return [turn.to_message() for turn in turns]

    def _record_tool_result(self, assistant_turn: Turn, result: ToolResult) -> None:
        if result.tool_call_id is not None:
            assistant_turn.attach_result(result)
        for change in result.changes:
            self.diff_tracker.record(change.path, change.before, change.after)
        self.history.append(Turn(TurnRole.TOOL_RESULT, format_tool_result(result)))
        self.events.publish(Event(EventType.TOOL_RESULT, {'result': result.to_dict()}, task_id=self.id))

    # -----------------------------
    # Events
    # -----------------------------

    def _publish_error(self, message: str) -> None:
        self.events.publish(Event(EventType.ERROR, {'message': message}, task_id=self.id))

    def _publish_token_usage(self, usage: TokenUsage) -> None:
        self.usage.add(usage)
        self.events.publish(Event(
            EventType.TOKEN_USAGE,
            {'usage': {'total_tokens': usage.total_tokens, 'available_tokens': self.context_window_tokens}},
            task_id=self.id,
        ))

    def _finish(self, state: TaskState) -> None:
        if self.state.is_terminal:
            return
        self.state = state

        diff = self.diff_tracker.build_task_diff()
        if diff:
            self.events.publish(Event(EventType.TASK_DIFF, {'diff': diff}, task_id=self.id))
        self.events.publish(Event(EventType.TASK_COMPLETE, {'state': state.value}, task_id=self.id))
        self.done.set()
        logger.info(f"[Task {self.id}] Finished: {state.value} after {self.loop_count} loops")
