# infra_cdk/project_cdk_stack.py
import hashlib
from pathlib import Path
from typing import Sequence

from aws_cdk import (
    Stack,
    Duration,
    Names,
    RemovalPolicy,
    aws_events as events,
    aws_events_targets as targets,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_lambda_destinations as lambda_destinations,
    aws_logs as logs,
    aws_logs_destinations as logs_destinations,
    aws_sns as sns,
    aws_sns_subscriptions as sns_subscriptions,
    CfnOutput
)
from constructs import Construct

from lambdas.common.settings import DEFAULT_FILTER_PATTERN
from lambdas.destination_router.router import FAILURE, SUCCESS, invocation_result_pattern
from lambdas.subscription_filter.filter_pattern import FilterPattern
from .alert_workflow import AlertWorkflowStateMachine

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LAMBDA_LAYER_DIR = PROJECT_ROOT / "lambda_layer"

# The Lambda asset is the project root so the `lambdas` package keeps its layout.
LAMBDA_ASSET_EXCLUDES = [
    "cdk.out", ".git", ".venv", "venv", "node_modules", ".pytest_cache",
    "**/__pycache__", "*.pyc", "tests", "cli", "infra_cdk", "lambda_layer",
    "*.md", "*.txt", "*.toml", "*.json", "app.py", "run_local.py", ".env",
]


def short_suffix(*parts: str) -> str:
    """A stable 8-hex-character suffix used to keep resource names unique."""
    return hashlib.shake_256("".join(parts).encode("utf-8")).hexdigest(4)


class LogNotificationStack(Stack):
    """
    Emails the given addresses whenever the given log group emits an ERROR or
    WARN line:

    log group -> subscription filter -> notification function ->
    EventBridge destination -> rule -> alert workflow -> SNS topic -> emails
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 log_group_name: str,
                 emails: Sequence[str] = (),
                 workflow_timeout: Duration = Duration.minutes(5),
                 filter_pattern: str = DEFAULT_FILTER_PATTERN,
                 route_success_events: bool = False,
                 use_step_functions: bool = True,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Fail at synth time instead of deploying a pattern CloudWatch would reject.
        FilterPattern.parse(filter_pattern)

        suffix = short_suffix(Names.unique_id(self), construct_id)

        # === Notification Topic ===
        topic = sns.Topic(self, "LambdaFunctionLogNotificationTopic",
            topic_name=f"lambda-func-log-notification-{suffix}-topic",
            display_name="Lambda Function Log Notification Topic",
        )
        for email in emails:
            topic.add_subscription(sns_subscriptions.EmailSubscription(email))

        # === Notification Function ===
        notification_function = _lambda.Function(self, "NotificationFunction",
            function_name=f"lambda-function-log-notification-{suffix}-func",
            runtime=_lambda.Runtime.PYTHON_3_12,
            architecture=_lambda.Architecture.ARM_64,
            code=_lambda.Code.from_asset(str(PROJECT_ROOT), exclude=LAMBDA_ASSET_EXCLUDES),
            handler="lambdas.log_notification.app.handler",
            timeout=Duration.minutes(3),
            role=iam.Role(self, "NotificationLambdaExecutionRole",
                role_name=f"lambda-log-notification-func-{suffix}-exec-role",
                assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
                managed_policies=[
                    iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole"),
                ],
            ),
            log_group=logs.LogGroup(self, "NotificationFunctionLogGroup",
                retention=logs.RetentionDays.THREE_MONTHS,
                removal_policy=RemovalPolicy.RETAIN_ON_UPDATE_OR_DELETE,
            ),
            logging_format=_lambda.LoggingFormat.JSON,
            system_log_level_v2=_lambda.SystemLogLevel.INFO,
            application_log_level_v2=_lambda.ApplicationLogLevel.INFO,
            # CloudWatch Logs invokes asynchronously, so results can go to EventBridge.
            on_success=lambda_destinations.EventBridgeDestination(),
            on_failure=lambda_destinations.EventBridgeDestination(),
        )

        # === Subscription Filter ===
        logs.SubscriptionFilter(self, "SubscriptionFilter",
            log_group=logs.LogGroup.from_log_group_name(self, "LogGroup", log_group_name),
            destination=logs_destinations.LambdaDestination(notification_function),
            filter_pattern=logs.FilterPattern.literal(filter_pattern),
        )

        # === Destination Routing ===
        conditions = (FAILURE, SUCCESS) if route_success_events else (FAILURE,)
        pattern = invocation_result_pattern(notification_function.function_arn, conditions)
        rule = events.Rule(self, "InvocationResultRule",
            event_pattern=events.EventPattern(
                source=pattern["source"],
                detail_type=pattern["detail-type"],
                detail=pattern["detail"],
            ),
        )

        # === Alert Composition Workflow ===
        if use_step_functions:
            workflow = AlertWorkflowStateMachine(self, "AlertWorkflow",
                topic=topic,
                timeout=workflow_timeout,
                state_machine_name=f"lambda-func-log-notification-{suffix}-state-machine",
            )
            rule.add_target(targets.SfnStateMachine(workflow.state_machine))
            CfnOutput(self, "StateMachineArn", value=workflow.state_machine.state_machine_arn)
        else:
            common_layer = _lambda.LayerVersion(self, "CommonLayer",
                code=_lambda.Code.from_asset(str(LAMBDA_LAYER_DIR)),
                compatible_runtimes=[_lambda.Runtime.PYTHON_3_12],
                compatible_architectures=[_lambda.Architecture.ARM_64],
                description="pydantic and pydantic-settings for the compose-alert function",
            )
            compose_alert_function = _lambda.Function(self, "ComposeAlertFunction",
                function_name=f"lambda-function-log-notification-{suffix}-compose",
                runtime=_lambda.Runtime.PYTHON_3_12,
                architecture=_lambda.Architecture.ARM_64,
                code=_lambda.Code.from_asset(str(PROJECT_ROOT), exclude=LAMBDA_ASSET_EXCLUDES),
                handler="lambdas.compose_alert.app.handler",
                timeout=workflow_timeout,
                environment={
                    "NOTIFICATION_TOPIC_ARN": topic.topic_arn,
                    "WORKFLOW_TIMEOUT_SECONDS": str(workflow_timeout.to_seconds()),
                },
                layers=[common_layer],
            )
            topic.grant_publish(compose_alert_function)
            rule.add_target(targets.LambdaFunction(compose_alert_function, retry_attempts=0))
            CfnOutput(self, "ComposeAlertFunctionName", value=compose_alert_function.function_name)

        # === Outputs ===
        CfnOutput(self, "NotificationTopicArn", value=topic.topic_arn)
        CfnOutput(self, "NotificationFunctionName", value=notification_function.function_name)
