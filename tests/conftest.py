# tests/conftest.py
import json
from typing import Any, Dict, List, Optional

import pytest

from lambdas.common.settings import get_settings

ACCOUNT_ID = "123456789012"
REGION = "ap-northeast-1"
LOG_GROUP = "/aws/lambda/example-function"
LOG_STREAM = "2025/06/24/[$LATEST]0123456789abcdef"


def error_log_message(stack_trace: Optional[List[str]] = None, request_id: str = "req-1",
                      error_type: str = "TypeError", error_message: str = "boom",
                      level: str = "ERROR", include_stack: bool = True) -> str:
    """A log line as Lambda writes it with the JSON log format."""
    detail: Dict[str, Any] = {"errorType": error_type, "errorMessage": error_message}
    if include_stack:
        detail["stackTrace"] = stack_trace if stack_trace is not None else ["frame1", "frame2"]
    return json.dumps({
        "timestamp": "2025-06-24T05:54:45.020Z",
        "level": level,
        "requestId": request_id,
        "message": detail,
    })


def log_entry(message: str, entry_id: str = "e-1", timestamp: int = 1750744485020) -> Dict[str, Any]:
    return {"id": entry_id, "timestamp": timestamp, "message": message}


def routed_event(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """The event shape the alert workflow is started with."""
    return {
        "account": ACCOUNT_ID,
        "region": REGION,
        "detail-type": "Lambda Function Invocation Result - Failure",
        "detail": {
            "responsePayload": {
                "logGroup": LOG_GROUP,
                "logStream": LOG_STREAM,
                "logEvents": entries,
            }
        },
    }


class RecordingPublisher:
    """Stands in for the SNS topic; remembers every alert it was handed."""

    def __init__(self):
        self.alerts = []

    def __call__(self, alert):
        self.alerts.append(alert)
        return f"message-{len(self.alerts)}"


class LogSink(list):
    def __call__(self, line):
        self.append(line)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def log_sink() -> LogSink:
    return LogSink()


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
