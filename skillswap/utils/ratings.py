from decimal import Decimal, ROUND_HALF_UP
from typing import List


def average_rating(ratings: List[int]) -> float:
    """Mean rounded half-up to one decimal; 0.0 when there are no ratings."""
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
