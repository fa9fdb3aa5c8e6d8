# tests/test_notification_handler.py
import base64
from types import SimpleNamespace

import pytest

from lambdas.common.errors import DecompressionError, MalformedPayloadError
from lambdas.log_notification import app as notification_app
from lambdas.log_notification.decoder import encode_log_payload

DOCUMENT = {
    "messageType": "DATA_MESSAGE",
    "logGroup": "/aws/lambda/example-function",
    "logStream": "stream-1",
    "logEvents": [{"id": "1", "timestamp": 1, "message": '{"level": "WARN"}'}],
}

CONTEXT = SimpleNamespace(
    function_name="lambda-function-log-notification-func",
    aws_request_id="11111111-2222-3333-4444-555555555555",
    memory_limit_in_mb=128,
)


def test_returns_decoded_document(log_sink):
    event = {"awslogs": {"data": encode_log_payload(DOCUMENT)}}

    result = notification_app.process_log_event(event, CONTEXT, log=log_sink)

    assert result == DOCUMENT


def test_emits_event_and_context_before_processing(log_sink):
    event = {"awslogs": {"data": encode_log_payload(DOCUMENT)}}

    notification_app.process_log_event(event, CONTEXT, log=log_sink)

    assert log_sink[0].startswith("Received event:")
    assert encode_log_payload(DOCUMENT)[:20] in log_sink[0]
    assert log_sink[1].startswith("Invocation context:")
    assert CONTEXT.aws_request_id in log_sink[1]


def test_corrupted_payload_is_logged_and_reraised(log_sink):
    event = {"awslogs": {"data": base64.b64encode(b"corrupted").decode()}}

    with pytest.raises(DecompressionError):
        notification_app.process_log_event(event, CONTEXT, log=log_sink)

    # Both diagnostic lines, then the failure; nothing after it.
    assert len(log_sink) == 3
    assert "DecompressionError" in log_sink[2]
    assert not any(line.startswith("Decoded log:") for line in log_sink)


def test_missing_awslogs_data_is_malformed(log_sink):
    with pytest.raises(MalformedPayloadError):
        notification_app.process_log_event({"Records": []}, None, log=log_sink)


def test_control_message_is_returned_as_is(log_sink):
    control = {"messageType": "CONTROL_MESSAGE", "logGroup": "", "logStream": "", "logEvents": []}
    event = {"awslogs": {"data": encode_log_payload(control)}}

    assert notification_app.process_log_event(event, None, log=log_sink) == control
    assert any("CONTROL_MESSAGE" in line for line in log_sink)


def test_describe_context_picks_known_attributes():
    described = notification_app.describe_context(CONTEXT)

    assert described == {
        "function_name": CONTEXT.function_name,
        "memory_limit_in_mb": 128,
        "aws_request_id": CONTEXT.aws_request_id,
    }
    assert notification_app.describe_context(None) == {}


def test_handler_logs_to_stdout(capsys):
    event = {"awslogs": {"data": encode_log_payload(DOCUMENT)}}

    assert notification_app.handler(event, CONTEXT) == DOCUMENT
    assert "Received event:" in capsys.readouterr().out
