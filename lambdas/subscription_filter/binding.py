# lambdas/subscription_filter/binding.py
"""
In-process stand-in for a CloudWatch Logs subscription filter: matches records
against a filter pattern and hands the survivors to the destination as one
awslogs event, exactly as the managed service does.
"""
import itertools
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..common.models import LogEvent, LogRecordBatch
from ..common.settings import DEFAULT_FILTER_PATTERN
from ..log_notification.decoder import encode_log_payload
from .filter_pattern import FilterPattern

Destination = Callable[[Dict[str, Any], object], Any]

_event_ids = itertools.count(1)


@dataclass
class LogRecord:
    """A raw record as written to a log stream."""
    message: str
    timestamp: Optional[int] = None
    id: Optional[str] = None

    def to_log_event(self) -> LogEvent:
        timestamp = self.timestamp if self.timestamp is not None else int(time.time() * 1000)
        event_id = self.id or f"{timestamp:d}{next(_event_ids):08d}"
        return LogEvent(id=event_id, timestamp=timestamp, message=self.message)


class SubscriptionFilterBinding:
    """
    Binds a log group to a destination through a filter pattern.

    Non-matching records are dropped silently. A delivery with at least one
    matching record invokes the destination exactly once; otherwise it is not
    invoked at all.
    """

    def __init__(self, log_group_name: str, destination: Destination,
                 filter_pattern: str = DEFAULT_FILTER_PATTERN,
                 filter_name: str = "SubscriptionFilter", owner: str = "123456789012"):
        self.log_group_name = log_group_name
        self.destination = destination
        self.filter_pattern = FilterPattern.parse(filter_pattern)
        self.filter_name = filter_name
        self.owner = owner

    def select(self, records: Iterable[LogRecord]) -> List[LogRecord]:
        """Returns the records the filter pattern lets through, in order."""
        return [record for record in records if self.filter_pattern.matches(record.message)]

    def build_batch(self, records: List[LogRecord], log_stream: str) -> LogRecordBatch:
        return LogRecordBatch(
            message_type="DATA_MESSAGE",
            owner=self.owner,
            log_group=self.log_group_name,
            log_stream=log_stream,
            subscription_filters=[self.filter_name],
            log_events=[record.to_log_event() for record in records],
        )

    def build_event(self, records: List[LogRecord], log_stream: str) -> Dict[str, Any]:
        """Wraps a batch the way CloudWatch Logs does: base64 of gzip of JSON."""
        document = self.build_batch(records, log_stream).model_dump(by_alias=True)
        return {"awslogs": {"data": encode_log_payload(document)}}

    def deliver(self, records: Iterable[LogRecord], log_stream: str, context: object = None) -> Any:
        """
        Filters one write to a log stream and invokes the destination with the
        matching records.

        Returns:
            The destination's result, or None when nothing matched.
        """
        matching = self.select(records)
        if not matching:
            return None
        print(f"Forwarding {len(matching)} record(s) from {self.log_group_name}/{log_stream} "
              f"through filter '{self.filter_name}'")
        return self.destination(self.build_event(matching, log_stream), context)
