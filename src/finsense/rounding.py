"""Decimal rounding that matches how scores are displayed."""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, places: int) -> float:
    """Round the exact binary value of `value`, sending ties away from zero.

    `round()` sends exact ties such as 0.625 to the even digit (0.62); scores
    and trend averages round them up (0.63).
    """
    return float(Decimal(value).quantize(Decimal(1).scaleb(-places), ROUND_HALF_UP))
