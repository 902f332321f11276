"""Rate string parsing.

A rate is written ``X/Yt`` with an optional ``:fixed`` suffix:

    >>> parse_rate("5/s")
    RateSpec(numerator=5.0, denominator_ms=1000, mode=<RefillMode.SLIDING: 'sliding'>)
    >>> parse_rate("2.5/10min:fixed").mode
    <RefillMode.FIXED: 'fixed'>

``X`` is a positive integer or decimal, ``Y`` an optional positive integer
(default 1) and ``t`` a time unit. Parsing is pure and happens once, when a
limiter is configured.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from throttle.core.errors import FormatError


class RefillMode(str, Enum):
    """How a bucket regains tokens."""

    SLIDING = "sliding"
    FIXED = "fixed"


UNIT_MS: dict[str, int] = {
    "ms": 1,
    "s": 1_000,
    "sec": 1_000,
    "second": 1_000,
    "m": 60_000,
    "min": 60_000,
    "minute": 60_000,
    "h": 3_600_000,
    "hour": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
}

_RATE_PATTERN = re.compile(
    r"^(?P<numerator>\d+(?:\.\d+)?)/(?P<count>\d+)?(?P<unit>[a-z]+)(?P<fixed>:fixed)?$"
)


@dataclass(frozen=True)
class RateSpec:
    """Parsed refill model.

    Attributes:
        numerator: Tokens regenerated per period (may be fractional).
        denominator_ms: Period length in milliseconds.
        mode: Sliding (continuous) or fixed (window reset) refill.
    """

    numerator: float
    denominator_ms: int
    mode: RefillMode = RefillMode.SLIDING

    @property
    def refill_rate_per_ms(self) -> float:
        return self.numerator / self.denominator_ms

    def tokens_for(self, elapsed_ms: float) -> float:
        # Multiply before dividing so whole periods yield exact token counts.
        return elapsed_ms * self.numerator / self.denominator_ms

    def time_for(self, tokens: float) -> float:
        return tokens * self.denominator_ms / self.numerator

    @property
    def window_ms(self) -> float:
        """Time needed to regenerate exactly one token."""
        return self.denominator_ms / self.numerator

    @property
    def is_fixed(self) -> bool:
        return self.mode is RefillMode.FIXED


def _format_error(spec: object, reason: str) -> FormatError:
    return FormatError(
        code="invalid_rate",
        message=f"Invalid rate {spec!r}: {reason}",
        details={
            "field": "rate",
            "value": str(spec),
            "hint": "Use the form X/Yt(:fixed), e.g. '5/s', '2.5/10min:fixed'",
        },
    )


def parse_rate(spec: str) -> RateSpec:
    """Parse a rate string into a :class:`RateSpec`.

    Args:
        spec: Rate such as ``"5/s"``, ``"100/15min"`` or ``"1/s:fixed"``.

    Returns:
        RateSpec: Immutable refill model.

    Raises:
        FormatError: If the string is empty, malformed, uses an unknown unit
            or yields a zero numerator or denominator.
    """

    if not isinstance(spec, str):
        raise _format_error(spec, "rate must be a string")

    text = spec.strip()
    if not text:
        raise _format_error(spec, "rate must not be empty")

    match = _RATE_PATTERN.match(text)
    if match is None:
        raise _format_error(spec, "expected X/Yt(:fixed)")

    unit = match.group("unit")
    if unit not in UNIT_MS:
        raise _format_error(spec, f"unknown time unit {unit!r}")

    numerator = float(match.group("numerator"))
    if numerator <= 0:
        raise _format_error(spec, "numerator must be positive")

    count = int(match.group("count") or 1)
    if count <= 0:
        raise _format_error(spec, "denominator must be positive")

    mode = RefillMode.FIXED if match.group("fixed") else RefillMode.SLIDING
    return RateSpec(numerator=numerator, denominator_ms=count * UNIT_MS[unit], mode=mode)
