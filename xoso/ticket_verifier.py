"""
Ticket Verification Module
Matches a ticket number against resolved draw results using the
trailing-digit rule and attaches payouts.
"""

import re
from typing import Dict, List, Optional

from loguru import logger

from xoso.models import ResultSet, WinningMatch
from xoso.prize_calculator import calculate_prize_amount

MIN_MATCH_DIGITS = 2


def normalize_ticket_number(ticket_number: str) -> str:
    return re.sub(r"\D", "", str(ticket_number or "").strip())


def match_suffix(ticket: str, prize_number: str) -> Optional[int]:
    """
    Longest common trailing-digit length, or None below two digits.

    Lengths are tried from min(len(ticket), len(prize_number)) down to 2;
    the first equal suffix wins.
    """
    for digits in range(min(len(ticket), len(prize_number)), MIN_MATCH_DIGITS - 1, -1):
        if ticket[-digits:] == prize_number[-digits:]:
            return digits
    return None


def check_ticket(ticket_number: str, results: ResultSet) -> List[WinningMatch]:
    """
    Every (province, tier, winning number) the ticket hits.

    No early exit: one ticket may win several tiers across several provinces.
    A hit whose (tier, digits) is not in the payout table is kept with amount 0.
    """
    ticket = normalize_ticket_number(ticket_number)
    if len(ticket) < MIN_MATCH_DIGITS:
        return []

    matches: List[WinningMatch] = []
    for result in results.values():
        for tier, numbers in result.prizes.items():
            for prize_number in numbers:
                digits = match_suffix(ticket, prize_number)
                if digits is None:
                    continue
                amount, _ = calculate_prize_amount(tier, digits)
                matches.append(WinningMatch(
                    province=result.name,
                    prize=tier,
                    prize_number=prize_number,
                    your_number=ticket,
                    matched_digits=digits,
                    prize_amount=amount,
                ))
    return matches


class TicketVerifier:
    """
    Verifies ticket numbers against a ResultSet and summarizes winnings.
    """

    def verify(self, ticket_number: str, results: ResultSet, province: Optional[str] = None) -> Dict:
        """
        Verify one ticket.

        Args:
            ticket_number: Ticket digits as typed or recognized
            results: ResultSet for the draw date
            province: Optional province/region key to restrict matching to

        Returns:
            Dictionary with matches, total amount and whether any results existed
        """
        scoped = results
        if province:
            scoped = {key: value for key, value in results.items() if key == province}
            if not scoped:
                logger.info(f"No results for '{province}', checking against all {len(results)} result(s)")
                scoped = results

        matches = check_ticket(ticket_number, scoped)
        total = sum(m.prize_amount for m in matches)

        if matches:
            logger.info(f"Ticket {normalize_ticket_number(ticket_number)}: {len(matches)} match(es), total {total}")

        return {
            "ticket": normalize_ticket_number(ticket_number),
            "matches": [m.to_dict() for m in matches],
            "totalAmount": total,
            "isWinner": total > 0,
            "hasResults": bool(scoped),
        }


def create_ticket_verifier() -> TicketVerifier:
    return TicketVerifier()
