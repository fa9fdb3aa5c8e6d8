# cli/push_log.py
import argparse
import json
import os
import time
import uuid
from datetime import datetime, timezone

import boto3
from botocore.exceptions import ClientError
from dotenv import load_dotenv

# Load environment variables from a .env file for local testing
load_dotenv()

LOG_GROUP_NAME = os.environ.get("LOG_GROUP_NAME")
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")


def create_log_entry(level: str, message, request_id: str | None = None) -> dict:
    """
    Creates a single log line in the Lambda JSON log format.
    `message` may be a plain string or an error dict with a stackTrace.
    """
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "level": level.upper(),
        "requestId": request_id or str(uuid.uuid4()),
        "message": message,
    }


def create_error_entry(error_type: str, error_message: str, stack_trace: list[str], level: str = "ERROR") -> dict:
    return create_log_entry(level, {
        "errorType": error_type,
        "errorMessage": error_message,
        "stackTrace": stack_trace,
    })


def sample_entries() -> list[dict]:
    return [
        create_log_entry("INFO", "Request handled successfully."),
        create_error_entry(
            "KeyError",
            "'user_id'",
            [
                '  File "/var/task/app.py", line 42, in handler\n    user = event["user_id"]\n',
            ],
        ),
        create_error_entry(
            "TimeoutError",
            "Upstream billing-api did not answer within 2500 ms.",
            [
                '  File "/var/task/app.py", line 18, in handler\n    return charge(order)\n',
                '  File "/var/task/billing.py", line 77, in charge\n    response = client.post(url, timeout=2.5)\n',
            ],
            level="WARN",
        ),
    ]


def push_log_entries(logs_client, log_group: str, log_stream: str, entries: list[dict]) -> int:
    """Writes entries as JSON lines into a fresh stream of the log group."""
    try:
        logs_client.create_log_stream(logGroupName=log_group, logStreamName=log_stream)
    except ClientError as e:
        if e.response["Error"]["Code"] != "ResourceAlreadyExistsException":
            raise

    now_ms = int(time.time() * 1000)
    events = [{"timestamp": now_ms + i, "message": json.dumps(entry)} for i, entry in enumerate(entries)]
    logs_client.put_log_events(logGroupName=log_group, logStreamName=log_stream, logEvents=events)
    return len(events)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Push sample ERROR/WARN/INFO lines to a CloudWatch log group.")
    parser.add_argument("--log-group", default=LOG_GROUP_NAME, help="Target log group (defaults to LOG_GROUP_NAME).")
    parser.add_argument("--log-stream", default=None, help="Stream name; a new one is generated by default.")
    parser.add_argument("--region", default=AWS_REGION)
    args = parser.parse_args(argv)

    if not args.log_group:
        print("❌ ERROR: No log group given. Pass --log-group or set LOG_GROUP_NAME in a .env file.")
        return

    log_stream = args.log_stream or f"push-log/{datetime.now(timezone.utc):%Y/%m/%d}/{uuid.uuid4().hex}"
    logs_client = boto3.client("logs", region_name=args.region)

    try:
        count = push_log_entries(logs_client, args.log_group, log_stream, sample_entries())
        print(f"✅ Success! {count} log line(s) written to {args.log_group}/{log_stream}.")
    except ClientError as e:
        print(f"❌ Failed to push log lines: {e.response['Error']['Message']}")


if __name__ == "__main__":
    main()
