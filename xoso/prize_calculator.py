"""
Payout lookup for suffix matches.

Amounts are in VND. Every (tier, matched digits) pair the matcher can
produce resolves to a number; pairs absent from the table pay 0.
"""

from typing import Dict, Tuple

PRIZE_AMOUNTS: Dict[str, Dict[int, int]] = {
    "Special": {6: 2_000_000_000, 5: 40_000_000, 4: 15_000_000, 3: 6_500_000, 2: 100_000},
    "Tier1": {5: 30_000_000, 4: 10_000_000, 3: 5_000_000, 2: 80_000},
    "Tier2": {5: 15_000_000, 4: 6_500_000, 3: 3_000_000, 2: 70_000},
    "Tier3": {5: 10_000_000, 4: 4_000_000, 2: 70_000},
    "Tier4": {5: 3_000_000, 4: 1_000_000, 2: 70_000},
    "Tier5": {4: 1_000_000, 2: 70_000},
    "Tier6": {4: 400_000, 3: 200_000, 2: 70_000},
    "Tier7": {3: 200_000, 2: 70_000},
    "Tier8": {2: 70_000},
}

TIER_LABELS = {
    "Special": "Giải Đặc Biệt",
    "Tier1": "Giải Nhất",
    "Tier2": "Giải Nhì",
    "Tier3": "Giải Ba",
    "Tier4": "Giải Tư",
    "Tier5": "Giải Năm",
    "Tier6": "Giải Sáu",
    "Tier7": "Giải Bảy",
    "Tier8": "Giải Tám",
}


def get_prize_amount(prize_tier: str, matched_digits: int) -> int:
    return PRIZE_AMOUNTS.get(prize_tier, {}).get(matched_digits, 0)


def calculate_prize_amount(prize_tier: str, matched_digits: int) -> Tuple[int, str]:
    """
    Calculate the payout for a suffix match.

    Args:
        prize_tier: Tier identifier ("Special", "Tier1" ... "Tier8")
        matched_digits: Length of the matching trailing digits (2-6)

    Returns:
        Tuple of (prize_amount, prize_description)
    """
    amount = get_prize_amount(prize_tier, matched_digits)
    label = TIER_LABELS.get(prize_tier, prize_tier)
    if amount == 0:
        return (0, f"{label} - trùng {matched_digits} số (không có thưởng)")
    return (amount, f"{label} - trùng {matched_digits} số")


def format_currency(amount: int) -> str:
    """Human readable VND amount: '2.0 tỷ', '40 triệu', '70 nghìn', '500 đồng'."""
    if amount >= 1_000_000_000:
        return f"{amount / 1_000_000_000:.1f} tỷ"
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.0f} triệu"
    if amount >= 1_000:
        return f"{amount / 1_000:.0f} nghìn"
    return f"{amount} đồng"
