# lambdas/log_notification/decoder.py
import base64
import binascii
import gzip
import json
import zlib
from typing import Any, Dict

from ..common.errors import DecompressionError, MalformedPayloadError


def decode_log_payload(data: str) -> Dict[str, Any]:
    """
    Restores the document carried in an awslogs event.

    CloudWatch Logs delivers `awslogs.data` as base64 of gzip-compressed JSON,
    so the payload is decoded, decompressed, then parsed, in that order.

    Args:
        data: The base64 string from event['awslogs']['data'].

    Returns:
        The parsed JSON document.

    Raises:
        DecompressionError: If the bytes are not valid base64/gzip.
        MalformedPayloadError: If the decompressed bytes are not UTF-8 JSON.
    """
    try:
        compressed = base64.b64decode(data, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise DecompressionError(f"Payload is not valid base64: {e}") from e
    if not compressed:
        raise DecompressionError("Payload is empty.")

    try:
        raw = gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionError(f"Payload is not valid gzip data: {e}") from e

    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayloadError(f"Decompressed payload is not valid JSON: {e}") from e


def encode_log_payload(document: Dict[str, Any]) -> str:
    """Builds the base64 gzip form CloudWatch Logs sends to subscription destinations."""
    raw = json.dumps(document).encode("utf-8")
    return base64.b64encode(gzip.compress(raw)).decode("ascii")
