"""
Lottery Info Extraction Module
Turns raw OCR text from a Vietnamese lottery ticket into a TicketCandidate:
candidate ticket numbers, the draw date and the province slug.

OCR confusions (O->0, l->1, S->5 ...) are normalized for digit extraction
only. Date and province matching run on the original text, because the
normalization would corrupt words such as "tám" or "Sóc Trăng".
"""

import re
from typing import List, Optional, Pattern, Tuple

from loguru import logger

from xoso.date_utils import build_date
from xoso.models import TicketCandidate
from xoso.provinces import PROVINCES

_CONFUSIONS = str.maketrans({
    "o": "0", "O": "0",
    "l": "1", "I": "1", "|": "1",
    "z": "2", "Z": "2",
    "s": "5", "S": "5", "$": "5",
    "b": "8", "B": "8",
})

# Ticket number directly after a marker: a lone letter (series letter) or "số" / "vé số"
_MARKED_TICKET = re.compile(
    r"(?:v[ée]\s*s[ốo]|s[ốo]|(?<![^\W\d_])[a-z])\s*[:.#\-]?\s*([0-9OolIZzSsBb|$]{6})(?![0-9])",
    re.IGNORECASE,
)
_BARE_SIX = re.compile(r"(?<!\d)\d{6}(?!\d)")
_SPLIT_RUN = re.compile(r"(?<!\d)\d{1,5}(?:[ \t]+\d{1,5})+(?!\d)")
_SHORT_NUMBER = re.compile(r"(?<!\d)\d{2,5}(?!\d)")

_DMY = r"(\d{1,2})\s*[/\-.]\s*(\d{1,2})\s*[/\-.]\s*(\d{4}|\d{2})(?!\d)"

# (name, pattern, group order) - first valid match wins
DATE_PATTERNS: List[Tuple[str, Pattern, str]] = [
    ("draw_marker", re.compile(r"m[ởo]\s*th[ưu][ởo]ng\s*[:\-]?\s*(?:ng[àa]y\s*)?" + _DMY, re.IGNORECASE), "dmy"),
    ("draw_day_marker", re.compile(r"(?:ng[àa]y\s*x[ổo]|x[ổo]\s*ng[àa]y)\s*[:\-]?\s*" + _DMY, re.IGNORECASE), "dmy"),
    ("prose", re.compile(r"ng[àa]y\s*(\d{1,2})\s*th[áa]ng\s*(\d{1,2})\s*n[ăa]m\s*(\d{4}|\d{2})(?!\d)", re.IGNORECASE), "dmy"),
    ("code_prefix", re.compile(r"\b(?:kqxs|xs[a-z]{1,4})\s*[:\-]?\s*" + _DMY, re.IGNORECASE), "dmy"),
    ("numeric", re.compile(r"(?<!\d)" + _DMY), "dmy"),
    ("iso", re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)"), "ymd"),
]


def _province_pattern(slug: str, *alternatives: str) -> Tuple[str, Pattern]:
    return slug, re.compile("|".join(alternatives), re.IGNORECASE)


# "XSKT" (xổ số kiến thiết) is printed on most tickets, not just Kon Tum's
AMBIGUOUS_CODES = frozenset({"xskt"})

# Second pass, only when no province name is found
PROVINCE_CODE_PATTERNS: List[Tuple[str, Pattern]] = [
    (p.slug, re.compile(rf"\b{p.code}\b", re.IGNORECASE))
    for p in PROVINCES.values()
    if p.code not in AMBIGUOUS_CODES
]


# Order matters: generic names ("long an", "huế") sit late in the table.
PROVINCE_PATTERNS: List[Tuple[str, Pattern]] = [
    _province_pattern("tphcm", r"h[ồôo]\s*ch[íi]\s*minh", r"tp\.?\s*hcm", r"s[àa]i\s*g[òo]n", r"\bhcm\b"),
    _province_pattern("dong-thap", r"[đd][ồo]ng\s*th[áa]p"),
    _province_pattern("ca-mau", r"c[àa]\s*m[àa]u"),
    _province_pattern("ben-tre", r"b[ếe]n\s*tre"),
    _province_pattern("vung-tau", r"v[ũu]ng\s*t[àa]u", r"b[àa]\s*r[ịi]a"),
    _province_pattern("bac-lieu", r"b[ạa]c\s*li[êe]u"),
    _province_pattern("dong-nai", r"[đd][ồo]ng\s*nai"),
    _province_pattern("can-tho", r"c[ầa]n\s*th[ơo]"),
    _province_pattern("soc-trang", r"s[óo]c\s*tr[ăa]ng"),
    _province_pattern("tay-ninh", r"t[âa]y\s*ninh"),
    _province_pattern("binh-thuan", r"b[ìi]nh\s*thu[ậa]n"),
    _province_pattern("vinh-long", r"v[ĩi]nh\s*long"),
    _province_pattern("binh-duong", r"b[ìi]nh\s*d[ưu][ơo]ng"),
    _province_pattern("tra-vinh", r"tr[àa]\s*vinh"),
    _province_pattern("binh-phuoc", r"b[ìi]nh\s*ph[ưu][ớo]c"),
    _province_pattern("hau-giang", r"h[ậa]u\s*giang"),
    _province_pattern("tien-giang", r"ti[ềe]n\s*giang"),
    _province_pattern("kien-giang", r"ki[êe]n\s*giang"),
    _province_pattern("da-lat", r"[đd][àa]\s*l[ạa]t", r"l[âa]m\s*[đd][ồo]ng"),
    _province_pattern("mien-bac", r"mi[ềe]n\s*b[ắa]c", r"h[àa]\s*n[ộo]i"),
    _province_pattern("thua-thien-hue", r"th[ừu]a\s*thi[êe]n"),
    _province_pattern("phu-yen", r"ph[úu]\s*y[êe]n"),
    _province_pattern("dak-lak", r"[đd][ắa]k\s*l[ắa]k"),
    _province_pattern("dak-nong", r"[đd][ắa]k\s*n[ôo]ng"),
    _province_pattern("quang-nam", r"qu[ảa]ng\s*nam"),
    _province_pattern("quang-ngai", r"qu[ảa]ng\s*ng[ãa]i"),
    _province_pattern("quang-tri", r"qu[ảa]ng\s*tr[ịi]"),
    _province_pattern("quang-binh", r"qu[ảa]ng\s*b[ìi]nh"),
    _province_pattern("da-nang", r"[đd][àa]\s*n[ẵa]ng"),
    _province_pattern("khanh-hoa", r"kh[áa]nh\s*h[òo]a"),
    _province_pattern("binh-dinh", r"b[ìi]nh\s*[đd][ịi]nh"),
    _province_pattern("gia-lai", r"gia\s*lai"),
    _province_pattern("ninh-thuan", r"ninh\s*thu[ậa]n"),
    _province_pattern("kon-tum", r"kon\s*tum"),
    _province_pattern("an-giang", r"\ban\s*giang"),
    _province_pattern("long-an", r"\blong\s*an\b"),
    ("thua-thien-hue", re.compile(r"\bhuế\b", re.IGNORECASE)),
]


def normalize_ocr_digits(text: str) -> str:
    return text.translate(_CONFUSIONS)


class LotteryInfoExtractor:
    """
    Parses raw OCR text into a TicketCandidate. Unrecognized fields stay None;
    partial recognition is the normal case.
    """

    def extract(self, raw_text: str) -> TicketCandidate:
        text = raw_text or ""
        candidate = TicketCandidate(
            numbers=self.extract_numbers(text),
            date=self.extract_date(text),
            province=self.extract_province(text),
        )
        logger.debug(
            f"Extracted {len(candidate.numbers)} number(s), date={candidate.date}, province={candidate.province}"
        )
        return candidate

    def extract_numbers(self, text: str) -> List[str]:
        """
        Ticket number candidates: 6-digit numbers first (marked, bare, then
        whitespace-split), followed by 2-5 digit numbers.
        """
        normalized = normalize_ocr_digits(text)
        six_digit: List[str] = []

        def _add(number: str) -> None:
            if number not in six_digit:
                six_digit.append(number)

        for match in _MARKED_TICKET.finditer(text):
            number = normalize_ocr_digits(match.group(1))
            # a run made mostly of look-alike letters is a word, not a number
            if number.isdigit() and sum(c.isdigit() for c in match.group(1)) >= 3:
                _add(number)

        for match in _BARE_SIX.finditer(normalized):
            _add(match.group(0))

        for match in _SPLIT_RUN.finditer(normalized):
            groups = match.group(0).split()
            for start in range(len(groups)):
                joined = ""
                for group in groups[start:]:
                    joined += group
                    if len(joined) >= 6:
                        break
                if len(joined) == 6:
                    _add(joined)

        others: List[str] = []
        for match in _SHORT_NUMBER.finditer(normalized):
            number = match.group(0)
            if number not in others:
                others.append(number)

        return six_digit + [n for n in others if n not in six_digit]

    def extract_date(self, text: str) -> Optional[str]:
        """Draw date as YYYY-MM-DD, or None."""
        for name, pattern, order in DATE_PATTERNS:
            for match in pattern.finditer(text):
                if order == "ymd":
                    year, month, day = match.groups()
                else:
                    day, month, year = match.groups()
                iso = build_date(int(day), int(month), int(year))
                if iso:
                    logger.debug(f"Date pattern '{name}' matched: {match.group(0)!r} -> {iso}")
                    return iso
        return None

    def extract_province(self, text: str) -> Optional[str]:
        """Province slug from a printed name, else from a station code, else None."""
        for patterns in (PROVINCE_PATTERNS, PROVINCE_CODE_PATTERNS):
            for slug, pattern in patterns:
                if pattern.search(text):
                    return slug
        return None


def extract_lottery_info(raw_text: str) -> TicketCandidate:
    return LotteryInfoExtractor().extract(raw_text)
