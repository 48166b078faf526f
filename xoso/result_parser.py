"""
HTML Result Parser
==================

Heuristic extraction of draw results from an arbitrary result-site page.

Every text node that is nothing but a 2-6 digit number is collected in
document order and deduplicated. Pages with fewer than MIN_UNIQUE_NUMBERS
such tokens are treated as error/placeholder pages. Otherwise the numbers
are bucketed by digit length and dealt into the region's prize tiers in
table order.

The slot assignment assumes the page lists numbers tier by tier; sites that
order their markup differently will get misassigned slots.
"""

import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Comment
from loguru import logger

from xoso.models import LotteryResult, ResultSet
from xoso.provinces import PRIZE_STRUCTURE, REGION_KEYS, REGION_NAMES, normalize_region

MIN_UNIQUE_NUMBERS = 15

_NUMBER_TOKEN = re.compile(r"^\s*(\d{2,6})\s*$")
_SKIPPED_TAGS = ("script", "style", "noscript")


def extract_numeric_tokens(html: str) -> List[str]:
    """Unique markup-delimited 2-6 digit tokens, first-seen order."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(_SKIPPED_TAGS):
        tag.decompose()

    seen = set()
    tokens: List[str] = []
    for text in soup.find_all(string=True):
        if isinstance(text, Comment):
            continue
        match = _NUMBER_TOKEN.match(str(text))
        if not match:
            continue
        number = match.group(1)
        if number not in seen:
            seen.add(number)
            tokens.append(number)
    return tokens


def assign_prizes(tokens: List[str], region: str) -> Dict[str, List[str]]:
    """
    Deal length-bucketed tokens into the region's tiers.

    Each tier consumes `count` entries of its digit length from where the
    previous tier of that length stopped. A 6-digit Special tier with no
    6-digit token borrows the first 5-digit token without consuming it.
    """
    buckets: Dict[int, List[str]] = {length: [] for length in range(2, 7)}
    for token in tokens:
        buckets[len(token)].append(token)

    cursors = {length: 0 for length in buckets}
    prizes: Dict[str, List[str]] = {}

    for tier_id, tier in PRIZE_STRUCTURE[region].items():
        if tier_id == "Special" and tier.digits == 6 and not buckets[6]:
            prizes[tier_id] = buckets[5][:1]
            continue
        start = cursors[tier.digits]
        prizes[tier_id] = buckets[tier.digits][start:start + tier.count]
        cursors[tier.digits] = start + tier.count

    return prizes


def parse_result_html(html: str, date: str, region: Optional[str] = None) -> ResultSet:
    """
    Parse one source page into a ResultSet keyed by region aggregate.

    Args:
        html: Raw page body
        date: Query date (DD-MM-YYYY), copied into the result
        region: Region the page was requested for; defaults to south

    Returns:
        Single-entry ResultSet, or {} when the page is below the token floor
    """
    region = normalize_region(region) or "south"

    try:
        tokens = extract_numeric_tokens(html)
    except Exception as e:
        logger.warning(f"Could not read HTML for {date}/{region}: {e}")
        return {}

    if len(tokens) < MIN_UNIQUE_NUMBERS:
        logger.debug(f"Only {len(tokens)} numeric tokens for {date}/{region}, treating as no result")
        return {}

    prizes = assign_prizes(tokens, region)
    result = LotteryResult(
        name=REGION_NAMES[region],
        region=region,
        date=date,
        prizes=prizes,
    )
    if result.number_count() == 0:
        return {}

    logger.debug(f"Parsed {result.number_count()} prize numbers from {len(tokens)} tokens for {date}/{region}")
    return {REGION_KEYS[region]: result}
