# profiti/services/pricing.py
"""
Delivery pricing policies.

Two policies are in use and deliberately kept apart:
- distance_fee: per-shop fee charged at order confirmation.
- shop_count_fee: flat estimate shown on the cart screen.
"""
from __future__ import annotations

import math

BASE_FEE = 3.0
BASE_RADIUS_KM = 4.0
FEE_PER_KM = 0.5

FLAT_FEE_FIRST_SHOP = 5
FLAT_FEE_EXTRA_SHOP = 2


def _round_tenth(value: float) -> float:
    # Half rounds up on the float value, as the mobile app always displayed it
    return math.floor(value * 10 + 0.5) / 10


def distance_fee(distance_km: float, free_delivery: bool = False) -> float:
    """
    Fee for delivering one shop's items over `distance_km`.
    0 when the shop offers free delivery, 3 up to 4 km, then +0.5 per km (one decimal).
    """
    if free_delivery:
        return 0.0
    if math.isnan(distance_km):
        return distance_km
    if distance_km <= BASE_RADIUS_KM:
        return BASE_FEE
    return _round_tenth(BASE_FEE + (distance_km - BASE_RADIUS_KM) * FEE_PER_KM)


def shop_count_fee(shop_count: int) -> float:
    """Flat estimate: 5 for a single shop (or none), plus 2 for every additional shop."""
    if shop_count <= 1:
        return float(FLAT_FEE_FIRST_SHOP)
    return float(FLAT_FEE_FIRST_SHOP + (shop_count - 1) * FLAT_FEE_EXTRA_SHOP)
