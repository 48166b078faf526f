"""
Result and ticket data structures shared by the parser, cache, matcher and API.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from xoso.provinces import PRIZE_STRUCTURE, REGION_ALIASES, REGIONS, PrizeTier


def _fits_tier(tier_id: str, tier: PrizeTier, number: str) -> bool:
    if len(number) == tier.digits:
        return True
    # parser fallback: a 6-digit Special may hold the first 5-digit number
    return tier_id == "Special" and tier.digits == 6 and len(number) == 5


@dataclass
class LotteryResult:
    """One province's (or region aggregate's) outcome for one date."""
    name: str
    region: str
    date: str
    prizes: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def number_count(self) -> int:
        return sum(len(numbers) for numbers in self.prizes.values())

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LotteryResult"]:
        """
        Build a result from untrusted data (cache payloads, API input).

        Unknown tiers, non-digit entries, entries whose length differs from
        the tier's digit length, and surplus slots are dropped. Returns None
        when the record itself is unusable.
        """
        if not isinstance(data, dict):
            return None

        name = data.get("name")
        region = REGION_ALIASES.get(str(data.get("region", "")), data.get("region"))
        date_str = data.get("date")
        raw_prizes = data.get("prizes")

        if not isinstance(name, str) or region not in REGIONS or not isinstance(raw_prizes, dict):
            logger.debug(f"Dropping malformed result record: {str(data)[:120]}")
            return None

        structure = PRIZE_STRUCTURE[region]
        prizes: Dict[str, List[str]] = {}
        for tier_id, tier in structure.items():
            numbers = raw_prizes.get(tier_id)
            if not isinstance(numbers, list):
                continue
            valid = [
                str(n) for n in numbers
                if isinstance(n, str) and n.isdigit() and _fits_tier(tier_id, tier, n)
            ]
            prizes[tier_id] = valid[:tier.count]

        return cls(name=name, region=region, date=str(date_str or ""), prizes=prizes)


# province/region key -> LotteryResult for one (date, region) query
ResultSet = Dict[str, LotteryResult]


def result_set_to_dict(results: ResultSet) -> Dict[str, Dict[str, Any]]:
    return {key: result.to_dict() for key, result in results.items()}


def result_set_from_dict(data: Any) -> ResultSet:
    """Deserialize a ResultSet, silently dropping malformed entries."""
    if not isinstance(data, dict):
        return {}
    results: ResultSet = {}
    for key, value in data.items():
        result = LotteryResult.from_dict(value)
        if result is not None:
            results[str(key)] = result
    return results


@dataclass
class WinningMatch:
    """A single tier hit for a ticket."""
    province: str
    prize: str
    prize_number: str
    your_number: str
    matched_digits: int
    prize_amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "province": self.province,
            "prize": self.prize,
            "prizeNumber": self.prize_number,
            "yourNumber": self.your_number,
            "matchedDigits": self.matched_digits,
            "prizeAmount": self.prize_amount,
        }


@dataclass
class TicketCandidate:
    """Structured guess extracted from OCR text, handed to the user to confirm."""
    numbers: List[str] = field(default_factory=list)
    date: Optional[str] = None
    province: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"numbers": list(self.numbers), "date": self.date, "province": self.province}
