#!/usr/bin/env python3
import aws_cdk as cdk
from cdk_nag import AwsSolutionsChecks

from infra_cdk.project_cdk_stack import LogNotificationStack
from lambdas.common.settings import get_settings

app = cdk.App()
settings = get_settings()

# CDK context (-c key=value) wins over environment settings.
emails_context = app.node.try_get_context("emails")
emails = [e.strip() for e in emails_context.split(",") if e.strip()] if emails_context else settings.notification_email_list

LogNotificationStack(
    app,
    "LambdaFunctionLogNotificationStack",
    log_group_name=app.node.try_get_context("logGroupName") or settings.log_group_name,
    emails=emails,
    workflow_timeout=cdk.Duration.seconds(int(settings.workflow_timeout_seconds)),
    filter_pattern=settings.filter_pattern,
    route_success_events=settings.route_success_events,
    use_step_functions=app.node.try_get_context("useStepFunctions") != "false",
)

if app.node.try_get_context("nag"):
    cdk.Aspects.of(app).add(AwsSolutionsChecks())

app.synth()
