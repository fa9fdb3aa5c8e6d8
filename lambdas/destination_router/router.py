# lambdas/destination_router/router.py
"""
Routing of Lambda invocation-result events (the EventBridge destination of the
notification function) into the alert workflow.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .event_pattern import matches_event_pattern

SUCCESS = "Success"
FAILURE = "Failure"
DETAIL_TYPE_PREFIX = "Lambda Function Invocation Result - "
EVENT_SOURCE = "lambda"

Target = Callable[[Dict[str, Any]], Any]


def detail_type_for(condition: str) -> str:
    return f"{DETAIL_TYPE_PREFIX}{condition}"


def invocation_result_pattern(function_arn: str, conditions: Iterable[str] = (FAILURE,)) -> Dict[str, Any]:
    """
    The event pattern that selects invocation results of one function.
    The same dictionary backs the CDK rule's EventPattern.
    """
    return {
        "source": [EVENT_SOURCE],
        "detail-type": [detail_type_for(c) for c in conditions],
        # Destination events carry a qualified ARN (e.g. ':$LATEST'), hence the prefix match.
        "detail": {"requestContext": {"functionArn": [{"prefix": function_arn}]}},
    }


def invocation_result_event(condition: str, function_arn: str, account: str, region: str,
                            request_payload: Any, response_payload: Any,
                            request_id: Optional[str] = None,
                            function_error: Optional[str] = None) -> Dict[str, Any]:
    """Builds the event Lambda puts on the default bus for an async invocation result."""
    now = datetime.now(timezone.utc).isoformat()
    response_context = {"statusCode": 200, "executedVersion": "$LATEST"}
    if condition == FAILURE:
        response_context["functionError"] = function_error or "Unhandled"
    return {
        "version": "0",
        "id": str(uuid.uuid4()),
        "detail-type": detail_type_for(condition),
        "source": EVENT_SOURCE,
        "account": account,
        "time": now,
        "region": region,
        "resources": [],
        "detail": {
            "version": "1.0",
            "timestamp": now,
            "requestContext": {
                "requestId": request_id or str(uuid.uuid4()),
                "functionArn": f"{function_arn}:$LATEST",
                "condition": "Success" if condition == SUCCESS else "RetriesExhausted",
                "approximateInvokeCount": 1,
            },
            "requestPayload": request_payload,
            "responseContext": response_context,
            "responsePayload": response_payload,
        },
    }


@dataclass
class RoutingRule:
    name: str
    pattern: Dict[str, Any]
    target: Target


class DestinationRouter:
    """Delivers each event to every rule whose pattern it matches."""

    def __init__(self):
        self.rules: List[RoutingRule] = []

    def add_rule(self, name: str, pattern: Dict[str, Any], target: Target) -> RoutingRule:
        rule = RoutingRule(name=name, pattern=pattern, target=target)
        self.rules.append(rule)
        return rule

    def matching_rules(self, event: Dict[str, Any]) -> List[RoutingRule]:
        return [rule for rule in self.rules if matches_event_pattern(rule.pattern, event)]

    def route(self, event: Dict[str, Any]) -> List[Any]:
        """
        Invokes the target of every matching rule once.

        Returns:
            The target results, in rule order. Empty when nothing matched.
        """
        rules = self.matching_rules(event)
        if not rules:
            print(f" -> No rule matched event '{event.get('detail-type')}'. Dropping it.")
            return []
        results = []
        for rule in rules:
            print(f" -> Routing '{event.get('detail-type')}' via rule '{rule.name}'")
            results.append(rule.target(event))
        return results


def build_default_router(function_arn: str, target: Target, route_success: bool = False) -> DestinationRouter:
    """
    Failure events always reach the workflow. Success events (whose
    responsePayload is the decoded log batch) only when route_success is set.
    """
    conditions = (FAILURE, SUCCESS) if route_success else (FAILURE,)
    router = DestinationRouter()
    router.add_rule("InvocationResultToAlertWorkflow", invocation_result_pattern(function_arn, conditions), target)
    return router
