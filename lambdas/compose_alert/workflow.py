# lambdas/compose_alert/workflow.py
"""
The alert composition workflow as an explicit state machine.

Each state is a small data transformation over a WorkflowScratch. The
`transition` function performs exactly one step, so a test (or a debugger) can
drive the chain one state at a time; `AlertWorkflow.run` drives a whole
execution under a wall-clock budget.

Outer loop (one alert per log entry):
    CheckEntriesRemain -> GetEntryDetail -> ParseEntryMessage ->
    GetStackTraceLines -> [inner loop] -> PrepareMessage -> Publish ->
    DropProcessedEntry -> CheckEntriesRemain
Inner loop (flattening a stack trace, outermost frame first):
    CheckLinesRemain -> GetLine -> ConcatenateLine -> DropProcessedLine -> CheckLinesRemain
"""
import json
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..common.errors import EntryParseError, MalformedPayloadError, WorkflowTimeoutError
from ..common.models import ComposedAlert, ParsedLogMessage, RoutedFailureEvent
from .formatter import compose_alert

Publish = Callable[[ComposedAlert], Any]

ENTRY_ERROR_POLICIES = ("abort", "skip")


class State(str, Enum):
    INIT = "Init"
    GET_LOG_EVENTS = "GetLogEvents"
    CHECK_ENTRIES_REMAIN = "CheckEntriesRemain"
    GET_ENTRY_DETAIL = "GetEntryDetail"
    PARSE_ENTRY_MESSAGE = "ParseEntryMessage"
    GET_STACK_TRACE_LINES = "GetStackTraceLines"
    CHECK_LINES_REMAIN = "CheckLinesRemain"
    GET_LINE = "GetLine"
    CONCATENATE_LINE = "ConcatenateLine"
    DROP_PROCESSED_LINE = "DropProcessedLine"
    PREPARE_MESSAGE = "PrepareMessage"
    PUBLISH = "Publish"
    DROP_PROCESSED_ENTRY = "DropProcessedEntry"
    SUCCEEDED = "Succeeded"


TERMINAL_STATES = frozenset({State.SUCCEEDED})


@dataclass
class WorkflowScratch:
    """Per-execution state. Never shared between executions."""
    event: Dict[str, Any]
    routed: Optional[RoutedFailureEvent] = None
    entries: Deque[Any] = field(default_factory=deque)
    entry: Any = None
    parsed: Optional[ParsedLogMessage] = None
    lines: Deque[str] = field(default_factory=deque)
    line: Optional[str] = None
    accumulator: str = ""
    alert: Optional[ComposedAlert] = None
    published: List[ComposedAlert] = field(default_factory=list)
    skipped: List[Optional[str]] = field(default_factory=list)


def _entry_id(scratch: WorkflowScratch) -> Optional[str]:
    return scratch.entry.get("id") if isinstance(scratch.entry, dict) else None


def _init(scratch: WorkflowScratch) -> State:
    scratch.accumulator = ""
    return State.GET_LOG_EVENTS


def _get_log_events(scratch: WorkflowScratch) -> State:
    try:
        scratch.routed = RoutedFailureEvent.model_validate(scratch.event)
    except ValidationError as e:
        raise MalformedPayloadError(f"Event has no detail.responsePayload.logEvents array: {e}") from e
    scratch.entries = deque(scratch.routed.detail.response_payload.log_events)
    return State.CHECK_ENTRIES_REMAIN


def _check_entries_remain(scratch: WorkflowScratch) -> State:
    return State.GET_ENTRY_DETAIL if scratch.entries else State.SUCCEEDED


def _get_entry_detail(scratch: WorkflowScratch) -> State:
    scratch.entry = scratch.entries[0]
    return State.PARSE_ENTRY_MESSAGE


def _parse_entry_message(scratch: WorkflowScratch) -> State:
    entry_id = _entry_id(scratch)
    message = scratch.entry.get("message") if isinstance(scratch.entry, dict) else None
    if not isinstance(message, str):
        raise EntryParseError("Log entry has no message string.", entry_id)
    try:
        scratch.parsed = ParsedLogMessage.model_validate(json.loads(message))
    except (json.JSONDecodeError, ValidationError) as e:
        raise EntryParseError(f"Log entry message is not a parseable error log: {e}", entry_id) from e
    return State.GET_STACK_TRACE_LINES


def _get_stack_trace_lines(scratch: WorkflowScratch) -> State:
    stack_trace = scratch.parsed.message.stack_trace
    if stack_trace is None:
        raise EntryParseError("Log entry message has no stackTrace field.", _entry_id(scratch))
    scratch.lines = deque(stack_trace)
    scratch.accumulator = ""
    return State.CHECK_LINES_REMAIN


def _check_lines_remain(scratch: WorkflowScratch) -> State:
    return State.GET_LINE if scratch.lines else State.PREPARE_MESSAGE


def _get_line(scratch: WorkflowScratch) -> State:
    scratch.line = scratch.lines[0]
    return State.CONCATENATE_LINE


def _concatenate_line(scratch: WorkflowScratch) -> State:
    scratch.accumulator = f"{scratch.accumulator}{scratch.line}\n"
    return State.DROP_PROCESSED_LINE


def _drop_processed_line(scratch: WorkflowScratch) -> State:
    scratch.lines.popleft()
    scratch.line = None
    return State.CHECK_LINES_REMAIN


def _prepare_message(scratch: WorkflowScratch) -> State:
    routed, parsed = scratch.routed, scratch.parsed
    payload = routed.detail.response_payload
    scratch.alert = compose_alert(
        routed.account,
        routed.region,
        scratch.accumulator,
        log_group=payload.log_group,
        log_stream=payload.log_stream,
        timestamp=parsed.timestamp,
        request_id=parsed.request_id,
        error_type=parsed.message.error_type,
        error_message=parsed.message.error_message,
    )
    return State.PUBLISH


def _drop_processed_entry(scratch: WorkflowScratch) -> State:
    scratch.entries.popleft()
    scratch.entry = None
    scratch.parsed = None
    scratch.alert = None
    return State.CHECK_ENTRIES_REMAIN


_STEPS: Dict[State, Callable[[WorkflowScratch], State]] = {
    State.INIT: _init,
    State.GET_LOG_EVENTS: _get_log_events,
    State.CHECK_ENTRIES_REMAIN: _check_entries_remain,
    State.GET_ENTRY_DETAIL: _get_entry_detail,
    State.PARSE_ENTRY_MESSAGE: _parse_entry_message,
    State.GET_STACK_TRACE_LINES: _get_stack_trace_lines,
    State.CHECK_LINES_REMAIN: _check_lines_remain,
    State.GET_LINE: _get_line,
    State.CONCATENATE_LINE: _concatenate_line,
    State.DROP_PROCESSED_LINE: _drop_processed_line,
    State.PREPARE_MESSAGE: _prepare_message,
    State.DROP_PROCESSED_ENTRY: _drop_processed_entry,
}


def transition(state: State, scratch: WorkflowScratch,
               publish: Optional[Publish] = None) -> Tuple[State, WorkflowScratch]:
    """
    Performs one step of the chain.

    Only the Publish state talks to the outside world, through `publish`.

    Raises:
        MalformedPayloadError: GetLogEvents on an event without a logEvents array.
        EntryParseError: ParseEntryMessage / GetStackTraceLines on a bad entry.
        ValueError: When asked to step out of a terminal state, or to publish
            without a publish callable.
    """
    if state in TERMINAL_STATES:
        raise ValueError(f"{state.value} is a terminal state.")
    if state == State.PUBLISH:
        if publish is None:
            raise ValueError("The Publish state needs a publish callable.")
        publish(scratch.alert)
        scratch.published.append(scratch.alert)
        return State.DROP_PROCESSED_ENTRY, scratch
    return _STEPS[state](scratch), scratch


@dataclass
class ExecutionResult:
    """
    The outcome of one successful execution.
    This is a pure data container without extra methods.
    """
    status: str
    alerts: List[ComposedAlert]
    skipped_entries: List[Optional[str]]
    transitions: int
    elapsed_seconds: float


class AlertWorkflow:
    """
    Runs executions of the alert composition chain.

    Every run builds its own WorkflowScratch, so concurrent runs never share
    state. The timeout is checked between steps; a step blocked inside
    `publish` is only noticed once it returns.
    """

    def __init__(self, publish: Publish, timeout_seconds: float = 300.0,
                 entry_error_policy: str = "abort",
                 clock: Callable[[], float] = time.monotonic,
                 log: Callable[[str], Any] = print):
        if entry_error_policy not in ENTRY_ERROR_POLICIES:
            raise ValueError(f"entry_error_policy must be one of {ENTRY_ERROR_POLICIES}, got {entry_error_policy!r}")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive.")
        self.publish = publish
        self.timeout_seconds = timeout_seconds
        self.entry_error_policy = entry_error_policy
        self.clock = clock
        self.log = log

    @classmethod
    def from_settings(cls, settings, publish: Publish) -> "AlertWorkflow":
        return cls(
            publish=publish,
            timeout_seconds=settings.workflow_timeout_seconds,
            entry_error_policy=settings.entry_error_policy,
        )

    def run(self, event: Dict[str, Any]) -> ExecutionResult:
        """
        Executes the chain for one routed event.

        Raises:
            WorkflowTimeoutError: If the execution outlives its budget.
            EntryParseError: On a bad entry when the policy is 'abort'; entries
                not yet processed are dropped.
            MalformedPayloadError: If the event carries no logEvents array.
        """
        scratch = WorkflowScratch(event=event)
        state = State.INIT
        transitions = 0
        started = self.clock()

        while state not in TERMINAL_STATES:
            elapsed = self.clock() - started
            if elapsed > self.timeout_seconds:
                self.log(f"❌ Execution timed out in state {state.value} after {elapsed:.2f}s.")
                raise WorkflowTimeoutError(elapsed, self.timeout_seconds)
            try:
                state, scratch = transition(state, scratch, self.publish)
            except EntryParseError as e:
                if self.entry_error_policy == "abort":
                    self.log(f"❌ Aborting execution on entry {e.entry_id}: {e}")
                    raise
                self.log(f"⚠️ Skipping entry {e.entry_id}: {e}")
                scratch.skipped.append(e.entry_id)
                state = State.DROP_PROCESSED_ENTRY
            transitions += 1

        self.log(f"✅ Execution finished: {len(scratch.published)} alert(s) published, "
                 f"{len(scratch.skipped)} entr(ies) skipped.")
        return ExecutionResult(
            status="SUCCEEDED",
            alerts=list(scratch.published),
            skipped_entries=list(scratch.skipped),
            transitions=transitions,
            elapsed_seconds=self.clock() - started,
        )

    __call__ = run
