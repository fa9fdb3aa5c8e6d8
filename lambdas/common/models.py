# lambdas/common/models.py
"""
Pydantic models for the payloads that cross service boundaries, and plain
dataclasses for the values the pipeline builds itself.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LogEvent(BaseModel):
    """A single CloudWatch Logs record as delivered to a subscription destination."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    timestamp: Optional[int] = None
    message: str


class LogRecordBatch(BaseModel):
    """
    The decoded awslogs document. CloudWatch also sends CONTROL_MESSAGE batches
    when a subscription is created; those carry no useful log events.
    """
    model_config = ConfigDict(populate_by_name=True)

    message_type: Optional[str] = Field(None, alias='messageType')
    owner: Optional[str] = None
    log_group: Optional[str] = Field(None, alias='logGroup')
    log_stream: Optional[str] = Field(None, alias='logStream')
    subscription_filters: List[str] = Field(default_factory=list, alias='subscriptionFilters')
    log_events: List[LogEvent] = Field(default_factory=list, alias='logEvents')

    @property
    def is_control_message(self) -> bool:
        return self.message_type == "CONTROL_MESSAGE"


class ErrorDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error_type: Optional[str] = Field(None, alias='errorType')
    error_message: Optional[str] = Field(None, alias='errorMessage')
    stack_trace: Optional[List[str]] = Field(None, alias='stackTrace')


class ParsedLogMessage(BaseModel):
    """
    The JSON body of one log entry, in the Lambda JSON log format:
    {timestamp, level, requestId, message: {errorType, errorMessage, stackTrace}}.
    """
    model_config = ConfigDict(populate_by_name=True)

    # Flat log lines often carry an epoch-millisecond timestamp.
    timestamp: Optional[Union[str, int, float]] = None
    level: Optional[str] = None
    request_id: Optional[Union[str, int]] = Field(None, alias='requestId')
    message: ErrorDetail = Field(default_factory=ErrorDetail)

    @model_validator(mode="before")
    @classmethod
    def lift_flat_error_fields(cls, data: Any) -> Any:
        # Accept {errorType, errorMessage, stackTrace, ...} at the top level too.
        if isinstance(data, dict) and "message" not in data:
            lifted = {k: data[k] for k in ("errorType", "errorMessage", "stackTrace") if k in data}
            if lifted:
                return {**data, "message": lifted}
        return data


class ResponsePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    log_group: Optional[str] = Field(None, alias='logGroup')
    log_stream: Optional[str] = Field(None, alias='logStream')
    # Entries stay raw so a bad entry only fails its own parse step.
    log_events: List[Any] = Field(alias='logEvents')


class InvocationDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response_payload: ResponsePayload = Field(alias='responsePayload')


class RoutedFailureEvent(BaseModel):
    """The EventBridge event that starts one workflow execution."""
    model_config = ConfigDict(populate_by_name=True)

    account: Optional[str] = None
    region: Optional[str] = None
    detail: InvocationDetail


@dataclass(frozen=True)
class ComposedAlert:
    """
    A subject/message pair ready to publish.
    This is a pure data container without extra methods.
    """
    subject: str
    message: str
