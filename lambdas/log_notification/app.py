# lambdas/log_notification/app.py
import json
from typing import Any, Callable, Dict

from ..common.errors import MalformedPayloadError
from .decoder import decode_log_payload

LogSink = Callable[[str], Any]


def describe_context(context: object) -> Dict[str, Any]:
    """Picks the printable attributes off a Lambda context object."""
    if context is None:
        return {}
    if isinstance(context, dict):
        return context
    fields = ("function_name", "function_version", "invoked_function_arn",
              "memory_limit_in_mb", "aws_request_id", "log_group_name", "log_stream_name")
    return {name: getattr(context, name) for name in fields if hasattr(context, name)}


def process_log_event(event: Dict[str, Any], context: object, log: LogSink = print) -> Any:
    """
    Decodes one subscription-filter batch and returns the decoded document.

    Any failure is logged and re-raised so the Lambda runtime reports a failed
    invocation and routes it to the configured failure destination. No retries
    happen here; that is the invoking runtime's job.
    """
    log(f"Received event: {json.dumps(event, default=str)}")
    log(f"Invocation context: {json.dumps(describe_context(context), default=str)}")

    try:
        try:
            data = event["awslogs"]["data"]
        except (KeyError, TypeError) as e:
            raise MalformedPayloadError(f"Event has no awslogs.data field: {e}") from e
        log_data = decode_log_payload(data)
    except Exception as e:
        log(f"❌ Failed to decode log batch: {type(e).__name__}: {e}")
        raise

    if isinstance(log_data, dict):
        if log_data.get("messageType") == "CONTROL_MESSAGE":
            log("ℹ️ Received a CONTROL_MESSAGE batch; nothing to notify.")
        else:
            log_events = log_data.get("logEvents") or []
            log(f"✅ Decoded {len(log_events)} log event(s) from "
                f"{log_data.get('logGroup')}/{log_data.get('logStream')}")
    log(f"Decoded log: {json.dumps(log_data, default=str)}")
    return log_data


def handler(event, context):
    """
    Triggered by the CloudWatch Logs subscription filter. The decoded document
    is the invocation result, which the success destination carries onward.
    """
    return process_log_event(event, context, log=print)
