from xoso.prize_calculator import calculate_prize_amount, format_currency, get_prize_amount
from xoso.provinces import PRIZE_STRUCTURE


def test_every_reachable_pair_has_an_amount():
    for region, structure in PRIZE_STRUCTURE.items():
        for tier_id, tier in structure.items():
            for digits in range(2, min(6, tier.digits) + 1):
                amount, description = calculate_prize_amount(tier_id, digits)
                assert isinstance(amount, int) and amount >= 0, (region, tier_id, digits)
                assert description


def test_known_payouts():
    assert get_prize_amount("Special", 6) == 2_000_000_000
    assert get_prize_amount("Tier1", 5) == 30_000_000
    assert get_prize_amount("Tier8", 2) == 70_000


def test_unlisted_pairs_pay_zero():
    assert get_prize_amount("Tier3", 3) == 0
    assert get_prize_amount("Tier5", 3) == 0
    assert get_prize_amount("Unknown", 2) == 0
    amount, description = calculate_prize_amount("Tier3", 3)
    assert amount == 0
    assert "không có thưởng" in description


def test_format_currency():
    assert format_currency(2_000_000_000) == "2.0 tỷ"
    assert format_currency(40_000_000) == "40 triệu"
    assert format_currency(70_000) == "70 nghìn"
    assert format_currency(500) == "500 đồng"
