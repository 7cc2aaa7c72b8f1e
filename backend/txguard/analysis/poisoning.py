"""
Address poisoning detection.

An attacker generates a vanity address whose first and last hex digits match
an address the victim already uses, then seeds the victim's history with it.
Users who compare only the ends of an address copy the wrong one. This module
flags transaction targets that look like one of the user's own accounts
without being identical to it.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from .models import PoisoningFinding

# Hex digits compared at each end, after the 0x marker
PREFIX_LENGTH = 4
SUFFIX_LENGTH = 4


def _normalize(address: Optional[str]) -> Optional[str]:
    """Lowercase hex body without the 0x marker, or None if unusable."""
    if not isinstance(address, str):
        return None
    body = address.strip().lower()
    if body.startswith("0x"):
        body = body[2:]
    if len(body) < PREFIX_LENGTH + SUFFIX_LENGTH:
        return None
    return body


def _resembles(candidate: str, known: str) -> bool:
    return (
        candidate != known
        and candidate[:PREFIX_LENGTH] == known[:PREFIX_LENGTH]
        and candidate[-SUFFIX_LENGTH:] == known[-SUFFIX_LENGTH:]
    )


def render_warning(suspect: str, resembles: str) -> str:
    return (
        f"The address {suspect} looks similar to your account {resembles} "
        "but is not the same address. This may be an address poisoning attack, "
        "verify the full address before signing."
    )


class AddressPoisoningDetector:
    """Stateless prefix/suffix look-alike check. Safe to share between reviews."""

    def detect(
        self,
        known_addresses: Iterable[Optional[str]],
        candidate_addresses: Iterable[Optional[str]],
    ) -> List[PoisoningFinding]:
        """
        Compare candidates against the user's known addresses.

        Args:
            known_addresses: The user's own accounts
            candidate_addresses: Transaction recipient and address-typed call parameters

        Returns:
            One finding per flagged candidate, in candidate order. Empty when
            nothing resembles a known address.
        """
        known: List[Tuple[str, str]] = []
        for address in known_addresses:
            normalized = _normalize(address)
            if normalized is not None:
                known.append((normalized, address.strip()))  # type: ignore[union-attr]
        known_set = {normalized for normalized, _ in known}

        findings: List[PoisoningFinding] = []
        seen = set()
        for candidate in candidate_addresses:
            normalized = _normalize(candidate)
            if normalized is None or normalized in seen:
                continue
            seen.add(normalized)

            # Identical to one of the user's accounts, never a finding
            if normalized in known_set:
                continue

            for known_normalized, known_original in known:
                if _resembles(normalized, known_normalized):
                    suspect = candidate.strip()  # type: ignore[union-attr]
                    findings.append(PoisoningFinding(
                        suspect_address=suspect,
                        resembles=known_original,
                        warning=render_warning(suspect, known_original),
                    ))
                    break

        return findings
