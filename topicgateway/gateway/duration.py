"""
Duration strings for poll windows.

Accepts one or more ``<decimal><unit>`` terms, e.g. ``250ms``, ``1.5s`` or
``1h30m``. Units are ns, us (also µs / μs), ms, s, m and h. A number without a
unit, including a bare ``0``, is rejected rather than guessed.
"""

import re
from decimal import Decimal, InvalidOperation

UNIT_SECONDS = {
    "ns": Decimal("0.000000001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "μs": Decimal("0.000001"),
    "ms": Decimal("0.001"),
    "s": Decimal("1"),
    "m": Decimal("60"),
    "h": Decimal("3600"),
}

# Longer units first so "ms" is never read as "m" followed by "s".
_TERM = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class DurationError(ValueError):
    """Raised for a duration string outside the accepted grammar."""
    pass


def parse_duration(text: str) -> float:
    """
    Parse a duration string into seconds.
    
    Args:
        text: Duration such as "100ms" or "2s"
    
    Returns:
        Duration in seconds
    
    Raises:
        DurationError: If the string is empty, unit-less, malformed or negative
    """
    if not text:
        raise DurationError("duration is empty")
    
    body = text
    negative = False
    if body[0] in "+-":
        negative = body[0] == "-"
        body = body[1:]
    
    if not body:
        raise DurationError(f"invalid duration {text!r}")
    
    total = Decimal(0)
    position = 0
    while position < len(body):
        match = _TERM.match(body, position)
        if match is None:
            if re.fullmatch(r"[\d.]+", body[position:]):
                raise DurationError(f"missing unit in duration {text!r}")
            raise DurationError(f"invalid duration {text!r}")
        
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation as e:
            raise DurationError(f"invalid duration {text!r}") from e
        
        total += amount * UNIT_SECONDS[match.group(2)]
        position = match.end()
    
    if negative and total > 0:
        raise DurationError(f"duration must not be negative, got {text!r}")
    
    return float(total)
