# tests/test_compose_alert_app.py
import importlib
from unittest.mock import MagicMock, patch

import pytest

from conftest import error_log_message, log_entry, routed_event

TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:lambda-func-log-notification-topic"


@pytest.fixture
def compose_app(monkeypatch):
    """Reloads the handler module so its global publisher sees the patched env and client."""
    monkeypatch.setenv("NOTIFICATION_TOPIC_ARN", TOPIC_ARN)
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("ENTRY_ERROR_POLICY", "skip")
    sns_client = MagicMock()
    sns_client.publish.return_value = {"MessageId": "mid-1"}

    with patch('lambdas.compose_alert.publisher.boto3.client', return_value=sns_client) as mock_boto_client:
        module = importlib.import_module("lambdas.compose_alert.app")
        mock_boto_client.reset_mock()
        module = importlib.reload(module)
        mock_boto_client.assert_called_once_with("sns", region_name="us-east-1")

    yield module, sns_client


def test_handler_publishes_each_entry(compose_app):
    module, sns_client = compose_app
    event = routed_event([
        log_entry(error_log_message(), entry_id="1"),
        log_entry("not json", entry_id="2"),
        log_entry(error_log_message(), entry_id="3"),
    ])

    result = module.handler(event, None)

    assert result == {"status": "SUCCEEDED", "publishedCount": 2, "skippedEntries": ["2"]}
    assert sns_client.publish.call_count == 2
    assert sns_client.publish.call_args.kwargs["TopicArn"] == TOPIC_ARN


def test_handler_refuses_to_run_without_topic(monkeypatch):
    monkeypatch.delenv("NOTIFICATION_TOPIC_ARN", raising=False)
    module = importlib.reload(importlib.import_module("lambdas.compose_alert.app"))

    assert module.PUBLISHER is None
    with pytest.raises(RuntimeError):
        module.handler(routed_event([]), None)
