# lambda-function-log-notification/run_local.py
"""
Runs the whole notification pipeline in-process:

sample records -> subscription filter -> notification function ->
invocation-result event -> destination router -> alert workflow -> publish

Alerts go to SNS when NOTIFICATION_TOPIC_ARN is set, otherwise they are printed.
"""
import json

from dotenv import load_dotenv

from cli.push_log import sample_entries
from lambdas.common.settings import get_settings
from lambdas.compose_alert.publisher import SnsAlertPublisher
from lambdas.compose_alert.workflow import AlertWorkflow
from lambdas.destination_router.router import (
    FAILURE,
    SUCCESS,
    build_default_router,
    invocation_result_event,
)
from lambdas.log_notification.app import process_log_event
from lambdas.subscription_filter.binding import LogRecord, SubscriptionFilterBinding

ACCOUNT_ID = "123456789012"
FUNCTION_NAME = "lambda-function-log-notification-local-func"


def print_alert(alert):
    print("\n--- Alert ---")
    print(f"Subject: {alert.subject}")
    print(alert.message)


def run_local():
    load_dotenv()
    settings = get_settings()
    function_arn = f"arn:aws:lambda:{settings.aws_region}:{ACCOUNT_ID}:function:{FUNCTION_NAME}"

    if settings.notification_topic_arn:
        publish = SnsAlertPublisher(settings.notification_topic_arn, region_name=settings.aws_region).publish
    else:
        print("ℹ️ NOTIFICATION_TOPIC_ARN not set. Alerts will be printed instead of published.")
        publish = print_alert

    workflow = AlertWorkflow.from_settings(settings, publish=publish)
    # Locally the decoded batch only exists on the success path, so route both results.
    router = build_default_router(function_arn, workflow.run, route_success=True)

    def notification_function(event, context):
        condition, response = SUCCESS, None
        try:
            response = process_log_event(event, context)
        except Exception as e:
            condition, response = FAILURE, {"errorType": type(e).__name__, "errorMessage": str(e)}
        result_event = invocation_result_event(
            condition, function_arn, ACCOUNT_ID, settings.aws_region,
            request_payload=event, response_payload=response,
        )
        return router.route(result_event)

    binding = SubscriptionFilterBinding(
        settings.log_group_name, notification_function, filter_pattern=settings.filter_pattern
    )
    records = [LogRecord(message=json.dumps(entry)) for entry in sample_entries()]

    print(f"--- Delivering {len(records)} record(s) to {settings.log_group_name} ---")
    results = binding.deliver(records, log_stream="run-local")
    for result in results or []:
        print(f"\n--- Execution {result.status}: {len(result.alerts)} alert(s), "
              f"{len(result.skipped_entries)} skipped ---")


if __name__ == "__main__":
    run_local()
