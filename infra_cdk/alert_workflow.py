# infra_cdk/alert_workflow.py
from aws_cdk import (
    Duration,
    aws_sns as sns,
    aws_stepfunctions as sfn,
    aws_stepfunctions_tasks as tasks,
)
from constructs import Construct

from lambdas.compose_alert.formatter import (
    MESSAGE_FIELDS,
    MESSAGE_HEADER,
    STACK_TRACE_LABEL,
    SUBJECT_TEMPLATE,
)
from lambdas.compose_alert.workflow import State

# Where each message field lives in the execution's state document.
FIELD_PATHS = {
    "account": "$.account",
    "region": "$.region",
    "log_group": "$.detail.responsePayload.logGroup",
    "log_stream": "$.detail.responsePayload.logStream",
    "timestamp": "$.work.parsed.value.timestamp",
    "request_id": "$.work.parsed.value.requestId",
    "error_type": "$.work.parsed.value.message.errorType",
    "error_message": "$.work.parsed.value.message.errorMessage",
}


def _escape_intrinsic(text: str) -> str:
    """Escapes the characters States.Format treats specially inside a string literal."""
    for char in ("\\", "'", "{", "}"):
        text = text.replace(char, "\\" + char)
    return text


def subject_format_expression() -> str:
    template = _escape_intrinsic(SUBJECT_TEMPLATE.format(account="\0", region="\0")).replace("\0", "{}")
    return f"States.Format('{template}', $.account, $.region)"


def message_format_expression() -> str:
    lines = [_escape_intrinsic(MESSAGE_HEADER), ""]
    lines += [f"{_escape_intrinsic(label)}: {{}}" for label, _ in MESSAGE_FIELDS]
    lines += ["", f"{_escape_intrinsic(STACK_TRACE_LABEL)}:", "{}"]
    template = "\n".join(lines)
    args = ", ".join([FIELD_PATHS[name] for _, name in MESSAGE_FIELDS] + ["$.work.trace.accumulator"])
    return f"States.Format('{template}', {args})"


class AlertWorkflowStateMachine(Construct):
    """
    The alert composition chain as a Step Functions state machine. State names
    mirror lambdas.compose_alert.workflow.State so executions read the same
    in the console as in the in-process engine.
    """

    def __init__(self, scope: Construct, id: str, *, topic: sns.ITopic,
                 timeout: Duration = Duration.minutes(5),
                 state_machine_name: str | None = None) -> None:
        super().__init__(scope, id)

        init = sfn.Pass(self, State.INIT.value,
            result=sfn.Result.from_object({"accumulator": ""}),
            result_path="$.work",
        )
        get_log_events = sfn.Pass(self, State.GET_LOG_EVENTS.value,
            input_path="$.detail.responsePayload.logEvents",
            result_path="$.work.entries",
        )
        check_entries_remain = sfn.Choice(self, State.CHECK_ENTRIES_REMAIN.value)
        get_entry_detail = sfn.Pass(self, State.GET_ENTRY_DETAIL.value,
            input_path="$.work.entries[0]",
            result_path="$.work.entry",
        )
        parse_entry_message = sfn.Pass(self, State.PARSE_ENTRY_MESSAGE.value,
            parameters={"value.$": "States.StringToJson($.work.entry.message)"},
            result_path="$.work.parsed",
        )
        get_stack_trace_lines = sfn.Pass(self, State.GET_STACK_TRACE_LINES.value,
            parameters={"lines.$": "$.work.parsed.value.message.stackTrace", "accumulator": ""},
            result_path="$.work.trace",
        )
        check_lines_remain = sfn.Choice(self, State.CHECK_LINES_REMAIN.value)
        get_line = sfn.Pass(self, State.GET_LINE.value,
            input_path="$.work.trace.lines[0]",
            result_path="$.work.trace.line",
        )
        concatenate_line = sfn.Pass(self, State.CONCATENATE_LINE.value,
            parameters={"value.$": "States.Format('{}{}\n', $.work.trace.accumulator, $.work.trace.line)"},
            result_path="$.work.trace.concatenated",
        )
        drop_processed_line = sfn.Pass(self, State.DROP_PROCESSED_LINE.value,
            parameters={
                "lines.$": "$.work.trace.lines[1:]",
                "accumulator.$": "$.work.trace.concatenated.value",
            },
            result_path="$.work.trace",
        )
        prepare_message = sfn.Pass(self, State.PREPARE_MESSAGE.value,
            parameters={
                "subject.$": subject_format_expression(),
                "message.$": message_format_expression(),
            },
            result_path="$.work.alert",
        )
        publish = tasks.SnsPublish(self, State.PUBLISH.value,
            topic=topic,
            subject=sfn.JsonPath.string_at("$.work.alert.subject"),
            message=sfn.TaskInput.from_json_path_at("$.work.alert.message"),
            result_path=sfn.JsonPath.DISCARD,
        )
        drop_processed_entry = sfn.Pass(self, State.DROP_PROCESSED_ENTRY.value,
            input_path="$.work.entries[1:]",
            result_path="$.work.entries",
        )
        succeeded = sfn.Succeed(self, State.SUCCEEDED.value)

        # Inner loop: flatten the stack trace one line at a time.
        get_line.next(concatenate_line).next(drop_processed_line).next(check_lines_remain)
        prepare_message.next(publish).next(drop_processed_entry).next(check_entries_remain)
        check_lines_remain.when(
            sfn.Condition.is_present("$.work.trace.lines[0]"), get_line
        ).otherwise(prepare_message)

        # Outer loop: one alert per log entry.
        get_entry_detail.next(parse_entry_message).next(get_stack_trace_lines).next(check_lines_remain)
        check_entries_remain.when(
            sfn.Condition.is_present("$.work.entries[0]"), get_entry_detail
        ).otherwise(succeeded)

        definition = init.next(get_log_events).next(check_entries_remain)

        self.state_machine = sfn.StateMachine(self, "StateMachine",
            state_machine_name=state_machine_name,
            definition_body=sfn.DefinitionBody.from_chainable(definition),
            timeout=timeout,
        )
