# lambdas/compose_alert/formatter.py
import re
from typing import Optional

from ..common.models import ComposedAlert

# Configuration
# SNS rejects subjects longer than 100 characters or containing line breaks.
SNS_SUBJECT_MAX_LENGTH = 100
SUBJECT_TEMPLATE = "[Alert] Lambda function error log ({account} / {region})"
MESSAGE_HEADER = "An ERROR/WARN log entry was detected in a monitored log group."
MISSING_VALUE = "N/A"

# (label, field) pairs, in the order they appear in the message body.
MESSAGE_FIELDS = (
    ("Account", "account"),
    ("Region", "region"),
    ("Log Group", "log_group"),
    ("Log Stream", "log_stream"),
    ("Timestamp", "timestamp"),
    ("Request ID", "request_id"),
    ("Error Type", "error_type"),
    ("Error Message", "error_message"),
)
STACK_TRACE_LABEL = "Stack Trace"

_SUBJECT_UNSAFE = re.compile(r"[\r\n\t\x00-\x1f\x7f]+")


def _value(value: Optional[str]) -> str:
    return MISSING_VALUE if value is None or value == "" else str(value)


def build_subject(account: Optional[str], region: Optional[str]) -> str:
    """Builds a subject SNS will accept: single line, at most 100 characters."""
    subject = SUBJECT_TEMPLATE.format(account=_value(account), region=_value(region))
    subject = _SUBJECT_UNSAFE.sub(" ", subject)
    if len(subject) > SNS_SUBJECT_MAX_LENGTH:
        subject = subject[:SNS_SUBJECT_MAX_LENGTH - 3] + "..."
    return subject


def build_message(stack_trace: str, **fields: Optional[str]) -> str:
    """
    Creates the plain text body of an alert.

    Args:
        stack_trace: The flattened stack trace, one frame per line.
        **fields: Values for every field named in MESSAGE_FIELDS.
    """
    lines = [MESSAGE_HEADER, ""]
    for label, name in MESSAGE_FIELDS:
        lines.append(f"{label}: {_value(fields.get(name))}")
    lines.append("")
    lines.append(f"{STACK_TRACE_LABEL}:")
    return "\n".join(lines) + "\n" + stack_trace


def compose_alert(account: Optional[str], region: Optional[str], stack_trace: str,
                  **fields: Optional[str]) -> ComposedAlert:
    return ComposedAlert(
        subject=build_subject(account, region),
        message=build_message(stack_trace, account=account, region=region, **fields),
    )
