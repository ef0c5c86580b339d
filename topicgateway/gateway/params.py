"""
Query parameter parsing shared by the gateway routes.

Each helper raises a 400 APIError naming the offending parameter, so handlers
can call them in the order their checks must run.
"""

from __future__ import annotations

import re

from fastapi import Request

from topicgateway.gateway.duration import DurationError, parse_duration
from topicgateway.gateway.errors import bad_request

MAX_OFFSET = 2**63 - 1
_MAX_OFFSET_DIGITS = len(str(MAX_OFFSET))

_DECIMAL = re.compile(r"[0-9]+")


def require_param(request: Request, name: str) -> str:
    value = request.query_params.get(name, "")
    if value == "":
        raise bad_request("missing_parameter", f"missing '{name}' query parameter")
    return value


def require_topic(request: Request) -> str:
    return require_param(request, "topic")


def require_offset(request: Request) -> int:
    raw = require_param(request, "offset")
    if not _DECIMAL.fullmatch(raw):
        raise bad_request("invalid_argument", f"error parsing offset {raw!r}: expected a non-negative integer")

    # Leading zeros are allowed; int() refuses very long digit strings.
    digits = raw.lstrip("0") or "0"
    if len(digits) > _MAX_OFFSET_DIGITS or int(digits) > MAX_OFFSET:
        raise bad_request("invalid_argument", f"error parsing offset {raw[:32]!r}: out of range")
    return int(digits)


def require_poll_duration(request: Request, max_poll_duration_s: float) -> float:
    raw = require_param(request, "pollDuration")
    try:
        duration_s = parse_duration(raw)
    except DurationError as e:
        raise bad_request("invalid_argument", f"invalid 'pollDuration' value: {e}") from e

    if duration_s > max_poll_duration_s:
        raise bad_request(
            "invalid_argument",
            f"invalid 'pollDuration' value: {raw!r} exceeds the maximum of {max_poll_duration_s:g}s",
        )
    return duration_s
