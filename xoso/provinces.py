"""
Province Registry and Draw Schedule
===================================

Static reference data for the Vietnamese lottery: which provinces draw on
which weekday, the prize structure of each region, and the schedule
resolver that maps a calendar date to the provinces drawing that day.

Weekdays follow the ticket convention: Sunday=0 ... Saturday=6.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

from loguru import logger


REGIONS = ("south", "central", "north")

# Aggregate keys/names used when a scraped page covers a whole region
REGION_KEYS = {
    "south": "mien-nam",
    "central": "mien-trung",
    "north": "mien-bac",
}

REGION_NAMES = {
    "south": "Miền Nam",
    "central": "Miền Trung",
    "north": "Miền Bắc",
}

# Short codes used by result sites (xsmn = "xổ số miền nam")
REGION_CODES = {
    "south": "xsmn",
    "central": "xsmt",
    "north": "xsmb",
}

# Accept the Vietnamese aliases the browser client historically sent
REGION_ALIASES = {
    "nam": "south",
    "trung": "central",
    "bac": "north",
    "mien-nam": "south",
    "mien-trung": "central",
    "mien-bac": "north",
}


@dataclass(frozen=True)
class Province:
    """A province (or the northern aggregate) that runs its own draw."""
    slug: str
    name: str
    region: str
    days: Tuple[int, ...]
    code: str

    def draws_on(self, weekday: int) -> bool:
        return weekday in self.days

    def to_dict(self) -> Dict:
        return {
            "key": self.slug,
            "name": self.name,
            "region": self.region,
            "days": list(self.days),
            "code": self.code,
        }


@dataclass(frozen=True)
class PrizeTier:
    """One prize level: expected digit length and number of slots."""
    label: str
    digits: int
    count: int


# Insertion order is the display order and the schedule tie-break.
PROVINCES: Dict[str, Province] = {
    p.slug: p
    for p in (
        Province("mien-bac", "Miền Bắc", "north", (0, 1, 2, 3, 4, 5, 6), "xsmb"),
        Province("thua-thien-hue", "Thừa Thiên Huế", "central", (0,), "xstth"),
        Province("phu-yen", "Phú Yên", "central", (1,), "xspy"),
        Province("dak-lak", "Đắk Lắk", "central", (2,), "xsdlk"),
        Province("quang-nam", "Quảng Nam", "central", (2,), "xsqnm"),
        Province("da-nang", "Đà Nẵng", "central", (3,), "xsdng"),
        Province("khanh-hoa", "Khánh Hòa", "central", (0, 3), "xskh"),
        Province("binh-dinh", "Bình Định", "central", (4,), "xsbdi"),
        Province("quang-tri", "Quảng Trị", "central", (4,), "xsqt"),
        Province("quang-binh", "Quảng Bình", "central", (4,), "xsqb"),
        Province("gia-lai", "Gia Lai", "central", (5,), "xsgl"),
        Province("ninh-thuan", "Ninh Thuận", "central", (5,), "xsnt"),
        Province("quang-ngai", "Quảng Ngãi", "central", (6,), "xsqng"),
        Province("dak-nong", "Đắk Nông", "central", (6,), "xsdno"),
        Province("kon-tum", "Kon Tum", "central", (0,), "xskt"),
        Province("tphcm", "TP.HCM", "south", (1, 6), "xshcm"),
        Province("dong-thap", "Đồng Tháp", "south", (1,), "xsdt"),
        Province("ca-mau", "Cà Mau", "south", (1,), "xscm"),
        Province("ben-tre", "Bến Tre", "south", (2,), "xsbt"),
        Province("vung-tau", "Vũng Tàu", "south", (2,), "xsvt"),
        Province("bac-lieu", "Bạc Liêu", "south", (2,), "xsbl"),
        Province("dong-nai", "Đồng Nai", "south", (3,), "xsdn"),
        Province("can-tho", "Cần Thơ", "south", (3,), "xsct"),
        Province("soc-trang", "Sóc Trăng", "south", (3,), "xsst"),
        Province("tay-ninh", "Tây Ninh", "south", (4,), "xstn"),
        Province("an-giang", "An Giang", "south", (4,), "xsag"),
        Province("binh-thuan", "Bình Thuận", "south", (4,), "xsbth"),
        Province("vinh-long", "Vĩnh Long", "south", (5,), "xsvl"),
        Province("binh-duong", "Bình Dương", "south", (5,), "xsbd"),
        Province("tra-vinh", "Trà Vinh", "south", (5,), "xstv"),
        Province("long-an", "Long An", "south", (6,), "xsla"),
        Province("binh-phuoc", "Bình Phước", "south", (6,), "xsbp"),
        Province("hau-giang", "Hậu Giang", "south", (6,), "xshg"),
        Province("tien-giang", "Tiền Giang", "south", (0,), "xstg"),
        Province("kien-giang", "Kiên Giang", "south", (0,), "xskg"),
        Province("da-lat", "Đà Lạt", "south", (0,), "xsdl"),
    )
}

_SOUTH_CENTRAL_STRUCTURE: Dict[str, PrizeTier] = {
    "Special": PrizeTier("ĐB", 6, 1),
    "Tier1": PrizeTier("G1", 5, 1),
    "Tier2": PrizeTier("G2", 5, 1),
    "Tier3": PrizeTier("G3", 5, 2),
    "Tier4": PrizeTier("G4", 5, 7),
    "Tier5": PrizeTier("G5", 4, 1),
    "Tier6": PrizeTier("G6", 4, 3),
    "Tier7": PrizeTier("G7", 3, 1),
    "Tier8": PrizeTier("G8", 2, 1),
}

_NORTH_STRUCTURE: Dict[str, PrizeTier] = {
    "Special": PrizeTier("ĐB", 5, 1),
    "Tier1": PrizeTier("G1", 5, 1),
    "Tier2": PrizeTier("G2", 5, 2),
    "Tier3": PrizeTier("G3", 5, 6),
    "Tier4": PrizeTier("G4", 4, 4),
    "Tier5": PrizeTier("G5", 4, 6),
    "Tier6": PrizeTier("G6", 3, 3),
    "Tier7": PrizeTier("G7", 2, 4),
}

PRIZE_STRUCTURE: Dict[str, Dict[str, PrizeTier]] = {
    "south": _SOUTH_CENTRAL_STRUCTURE,
    "central": _SOUTH_CENTRAL_STRUCTURE,
    "north": _NORTH_STRUCTURE,
}


def normalize_region(region: Optional[str]) -> Optional[str]:
    """
    Normalize a region filter.

    Returns one of REGIONS, or None for "no filter" (empty or "all").

    Raises:
        ValueError: for an unrecognized region name
    """
    if region is None:
        return None
    value = region.strip().lower()
    if value in ("", "all"):
        return None
    value = REGION_ALIASES.get(value, value)
    if value not in REGIONS:
        raise ValueError(f"Unknown region: {region}")
    return value


def get_province(slug: str) -> Optional[Province]:
    return PROVINCES.get(slug)


def get_prize_structure(region: str) -> Dict[str, PrizeTier]:
    return PRIZE_STRUCTURE[region]


def ticket_weekday(value: Union[date, datetime]) -> int:
    """Python weekday (Monday=0) converted to the Sunday=0 convention."""
    return (value.weekday() + 1) % 7


def provinces_for_date(value: Union[date, datetime], region: Optional[str] = None) -> List[Province]:
    """
    Provinces drawing on the given date, in table order.

    Args:
        value: Calendar date of the draw
        region: Optional region filter ("south", "central", "north", aliases accepted)

    Returns:
        Ordered list of Province
    """
    weekday = ticket_weekday(value)
    region_filter = normalize_region(region)

    provinces = [
        p for p in PROVINCES.values()
        if p.draws_on(weekday) and (region_filter is None or p.region == region_filter)
    ]
    logger.debug(f"{len(provinces)} provinces draw on weekday {weekday} (region={region_filter or 'all'})")
    return provinces
