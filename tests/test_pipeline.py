# tests/test_pipeline.py
"""
End to end: log lines -> subscription filter -> notification function ->
invocation-result event -> router -> alert workflow -> publisher.
"""
import json

import pytest

from lambdas.common.errors import DecompressionError
from lambdas.compose_alert.workflow import AlertWorkflow
from lambdas.destination_router.router import (
    FAILURE,
    SUCCESS,
    build_default_router,
    invocation_result_event,
)
from lambdas.log_notification.app import process_log_event
from lambdas.subscription_filter.binding import LogRecord, SubscriptionFilterBinding

from conftest import ACCOUNT_ID, REGION, LOG_GROUP, LOG_STREAM, error_log_message

FUNCTION_ARN = f"arn:aws:lambda:{REGION}:{ACCOUNT_ID}:function:lambda-function-log-notification-func"


def _wire(publisher, log_sink, route_success=True):
    workflow = AlertWorkflow(publisher, log=log_sink)
    router = build_default_router(FUNCTION_ARN, workflow.run, route_success=route_success)

    def notification_function(event, context):
        try:
            response, condition = process_log_event(event, context, log=log_sink), SUCCESS
        except DecompressionError as e:
            response, condition = {"errorType": type(e).__name__, "errorMessage": str(e)}, FAILURE
        return router.route(invocation_result_event(
            condition, FUNCTION_ARN, ACCOUNT_ID, REGION,
            request_payload=event, response_payload=response,
        ))

    return SubscriptionFilterBinding(LOG_GROUP, notification_function)


def test_error_and_warn_lines_become_alerts(publisher, log_sink):
    binding = _wire(publisher, log_sink)
    records = [
        LogRecord(json.dumps({"level": "INFO", "message": "fine"})),
        LogRecord(error_log_message(request_id="r-err", stack_trace=["at a", "at b"])),
        LogRecord(error_log_message(request_id="r-warn", level="WARN", stack_trace=["at c"])),
    ]

    results = binding.deliver(records, LOG_STREAM)

    assert [r.status for r in results] == ["SUCCEEDED"]
    assert len(publisher.alerts) == 2
    first, second = publisher.alerts
    assert first.subject == f"[Alert] Lambda function error log ({ACCOUNT_ID} / {REGION})"
    assert "Request ID: r-err" in first.message
    assert first.message.endswith("Stack Trace:\nat a\nat b\n")
    assert f"Log Stream: {LOG_STREAM}" in second.message
    assert second.message.endswith("Stack Trace:\nat c\n")


def test_info_only_writes_never_reach_the_function(publisher, log_sink):
    binding = _wire(publisher, log_sink)

    assert binding.deliver([LogRecord(json.dumps({"level": "INFO"}))], LOG_STREAM) is None
    assert log_sink == []
    assert publisher.alerts == []


def test_success_results_are_dropped_unless_routed(publisher, log_sink):
    binding = _wire(publisher, log_sink, route_success=False)

    assert binding.deliver([LogRecord(error_log_message())], LOG_STREAM) == []
    assert publisher.alerts == []


def test_failure_result_without_log_events_fails_the_execution(publisher, log_sink):
    """A failed decode carries no logEvents, so the workflow cannot build an alert."""
    workflow = AlertWorkflow(publisher, log=log_sink)
    router = build_default_router(FUNCTION_ARN, workflow.run)
    event = invocation_result_event(
        FAILURE, FUNCTION_ARN, ACCOUNT_ID, REGION,
        request_payload={"awslogs": {"data": "AAAA"}},
        response_payload={"errorType": "DecompressionError", "errorMessage": "bad gzip"},
    )

    with pytest.raises(ValueError):
        router.route(event)
    assert publisher.alerts == []
