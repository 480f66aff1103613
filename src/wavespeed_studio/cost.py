from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, str, Decimal]

_CENTS = Decimal("0.01")


def _to_decimal(value: Number) -> Decimal:
    # str() keeps 0.042 as written instead of its binary float expansion.
    return value if isinstance(value, Decimal) else Decimal(str(value))


def estimate_cost(
    *,
    duration_seconds: Number | None = None,
    rate: Number | None = None,
    artifact_count: Number | None = None,
    per_artifact_rate: Number | None = None,
) -> Decimal:
    """
    Project the price of a run, rounded to cents.

    Either ``duration_seconds`` and ``rate`` (video tools) or ``artifact_count``
    and ``per_artifact_rate`` (image tools) must be given. The estimate is
    advisory; a cost reported by the service while polling takes precedence.
    """
    if duration_seconds is not None and rate is not None:
        total = _to_decimal(duration_seconds) * _to_decimal(rate)
    elif artifact_count is not None and per_artifact_rate is not None:
        total = _to_decimal(artifact_count) * _to_decimal(per_artifact_rate)
    else:
        raise ValueError(
            "estimate_cost requires duration_seconds and rate, or artifact_count and per_artifact_rate"
        )
    return total.quantize(_CENTS, rounding=ROUND_HALF_UP)
