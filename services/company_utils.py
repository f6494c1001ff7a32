from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence

from models.registry_record import SearchCandidate


_COMPANY_NUMBER_RE = re.compile(r"^\d{8}$")
_SIC_CODE_RE = re.compile(r"^\d{5}$")

SEARCH_SUFFIXES = ("LIMITED", "LTD", "SERVICES")

STATUS_INTERPRETATIONS = {
    "active": "Company is actively trading",
    "dissolved": "Company has been dissolved",
    "liquidation": "Company is in liquidation",
    "receivership": "Company is in receivership",
    "converted-closed": "Company has been converted and closed",
    "insolvency-proceedings": "Company is undergoing insolvency proceedings",
}

FILING_CATEGORIES = {
    "accounts": ["AA", "AB", "AC", "AD", "AE", "AF", "AG", "AH", "AZ"],
    "annual-return": [f"AR{n:02d}" for n in range(1, 12)],
    "change-of-name": ["NM01", "NM02", "NM04", "NM05", "NM06"],
    "officer-appointment": ["AP01", "AP02", "AP03", "AP04"],
    "officer-termination": ["TM01", "TM02", "TM03"],
    "capital": [f"SH{n:02d}" for n in range(1, 11)],
    "mortgage": [f"MG{n:02d}" for n in range(1, 11)],
    "incorporation": ["IN01"],
    "dissolution": ["DS01"],
}


def is_company_number(identifier: Optional[str]) -> bool:
    """True for the fixed 8-digit registry number format."""
    if not identifier:
        return False
    return bool(_COMPANY_NUMBER_RE.match(identifier))


def normalize_whitespace(text: Optional[str]) -> str:
    if not text:
        return ""
    return " ".join(str(text).split())


def search_variations(query: str) -> List[str]:
    """Fallback queries tried in order when a name search comes back empty."""
    variations = [f"{query} {suffix}" for suffix in SEARCH_SUFFIXES]
    variations.append(normalize_whitespace(query))
    return variations


def pick_best_match(query: str, candidates: Sequence[SearchCandidate]) -> Optional[SearchCandidate]:
    """Prefer a case-insensitive substring match in either direction, else the first hit."""
    if not candidates:
        return None
    wanted = query.lower()
    for candidate in candidates:
        title = (candidate.title or "").lower()
        if not title:
            continue
        if wanted in title or title in wanted:
            return candidate
    return candidates[0]


def filter_sic_codes(codes: Iterable) -> List[str]:
    """Keep only 5-digit numeric string codes, preserving order."""
    return [c for c in (codes or []) if isinstance(c, str) and _SIC_CODE_RE.match(c)]


def interpret_status(status: Optional[str]) -> str:
    return STATUS_INTERPRETATIONS.get(status or "", "Unknown status")


def categorize_filing_type(filing_type: Optional[str]) -> str:
    for category, types in FILING_CATEGORIES.items():
        if filing_type in types:
            return category
    return "other"
