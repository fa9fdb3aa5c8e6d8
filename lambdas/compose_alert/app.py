# lambdas/compose_alert/app.py
from ..common.settings import get_settings
from .publisher import SnsAlertPublisher
from .workflow import AlertWorkflow

# Initialize the publisher in the global scope so warm invocations reuse the SNS client.
SETTINGS = get_settings()
try:
    PUBLISHER = SnsAlertPublisher(SETTINGS.notification_topic_arn, region_name=SETTINGS.aws_region)
except ValueError as e:
    print(f"FATAL: {e} Set NOTIFICATION_TOPIC_ARN.")
    PUBLISHER = None


def handler(event, context):
    """
    Runs the alert composition workflow in-process for one routed
    invocation-result event. Used when the stack is deployed without
    Step Functions; errors propagate so the invocation is reported as failed.
    """
    print("--- ComposeAlert Lambda Triggered ---")
    if PUBLISHER is None:
        raise RuntimeError("Lambda is not configured correctly: no notification topic.")

    workflow = AlertWorkflow.from_settings(SETTINGS, publish=PUBLISHER.publish)
    result = workflow.run(event)
    return {
        "status": result.status,
        "publishedCount": len(result.alerts),
        "skippedEntries": result.skipped_entries,
    }
