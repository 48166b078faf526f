from datetime import date, datetime

import pytest

from xoso.provinces import (
    PROVINCES,
    get_prize_structure,
    get_province,
    normalize_region,
    provinces_for_date,
    ticket_weekday,
)

MONDAY = date(2024, 10, 21)
SUNDAY = date(2024, 10, 20)


def test_ticket_weekday_is_sunday_based():
    assert ticket_weekday(SUNDAY) == 0
    assert ticket_weekday(MONDAY) == 1
    assert ticket_weekday(datetime(2024, 10, 26, 18, 0)) == 6


def test_monday_schedule_in_table_order():
    slugs = [p.slug for p in provinces_for_date(MONDAY)]
    expected = [slug for slug, p in PROVINCES.items() if 1 in p.days]

    assert slugs == expected
    assert slugs == ["mien-bac", "phu-yen", "tphcm", "dong-thap", "ca-mau"]


def test_region_filter_and_aliases():
    assert [p.slug for p in provinces_for_date(MONDAY, "south")] == ["tphcm", "dong-thap", "ca-mau"]
    assert [p.slug for p in provinces_for_date(MONDAY, "trung")] == ["phu-yen"]
    assert [p.slug for p in provinces_for_date(SUNDAY, "central")] == ["thua-thien-hue", "khanh-hoa", "kon-tum"]
    assert [p.slug for p in provinces_for_date(SUNDAY, "all")][0] == "mien-bac"


def test_north_draws_every_day():
    for offset in range(7):
        day = date(2024, 10, 20 + offset)
        assert "mien-bac" in [p.slug for p in provinces_for_date(day)]


def test_normalize_region():
    assert normalize_region(None) is None
    assert normalize_region("") is None
    assert normalize_region("ALL") is None
    assert normalize_region(" North ") == "north"
    assert normalize_region("mien-nam") == "south"
    with pytest.raises(ValueError):
        normalize_region("mars")


def test_prize_structures():
    south = get_prize_structure("south")
    north = get_prize_structure("north")

    assert list(south) == ["Special"] + [f"Tier{i}" for i in range(1, 9)]
    assert south["Special"].digits == 6 and south["Tier4"].count == 7
    assert "Tier8" not in north
    assert north["Special"].digits == 5
    assert sum(t.count for t in north.values()) == 27
    assert get_prize_structure("central") is south


def test_province_lookup():
    assert get_province("tphcm").name == "TP.HCM"
    assert get_province("tphcm").to_dict()["days"] == [1, 6]
    assert get_province("atlantis") is None
