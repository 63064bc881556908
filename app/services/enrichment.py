"""
Deterministic stand-in enrichment and decision-maker detection.

Synthetic data is derived from the sum of the company name's code points so
repeated runs over the same company produce identical contacts.
"""

from __future__ import annotations

import re
from typing import Iterable, List

from app.models.awards import CompanyInfo, Contact, Enrichment

FIRST_NAMES = ("John", "Sarah", "Michael", "Jennifer", "David", "Lisa")
LAST_NAMES = ("Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia")
CONTACT_TITLES = (
    "Director of Federal Programs",
    "Business Development Manager",
    "Government Contracts Manager",
    "VP of Federal Sales",
    "Contracts Administrator",
)
COMPANY_SIZES = (
    "50-100 employees",
    "100-200 employees",
    "200-500 employees",
    "500-1000 employees",
)
SPECIALITIES = (
    "Government Contracts",
    "Federal IT Solutions",
    "Consulting Services",
    "Program Management",
)

DECISION_MAKER_KEYWORDS = (
    "ceo",
    "cto",
    "cfo",
    "coo",
    "chief",
    "president",
    "director",
    "vp",
    "vice president",
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def name_hash(company_name: str) -> int:
    return sum(ord(char) for char in company_name)


def _synthetic_contact(
    *, first: str, last: str, title: str, domain: str, phone: str, company_name: str
) -> Contact:
    handle = f"{first.lower()}{last.lower()}"
    return Contact(
        name=f"{first} {last}",
        first_name=first,
        last_name=last,
        title=title,
        email=f"{first.lower()}.{last.lower()}@{domain}.com",
        phone=phone,
        linkedin=f"https://linkedin.com/in/{handle}",
        organization_name=company_name,
    )


def generate_synthetic_enrichment(company_name: str) -> Enrichment:
    """Build two plausible contacts and a company profile for ``company_name``."""
    clean_name = _NON_ALNUM.sub("", company_name.lower())
    h = name_hash(company_name)
    contacts = [
        _synthetic_contact(
            first=FIRST_NAMES[h % len(FIRST_NAMES)],
            last=LAST_NAMES[h % len(LAST_NAMES)],
            title=CONTACT_TITLES[0],
            domain=clean_name,
            phone=f"(555) {h % 900 + 100:03d}-{(h * 2) % 9000 + 1000:04d}",
            company_name=company_name,
        ),
        _synthetic_contact(
            first=FIRST_NAMES[(h + 1) % len(FIRST_NAMES)],
            last=LAST_NAMES[(h + 3) % len(LAST_NAMES)],
            title=CONTACT_TITLES[1],
            domain=clean_name,
            phone=f"(555) {(h + 100) % 900 + 100:03d}-{(h * 3) % 9000 + 1000:04d}",
            company_name=company_name,
        ),
    ]
    company_info = CompanyInfo(
        size=COMPANY_SIZES[h % len(COMPANY_SIZES)],
        industry="Professional Services",
        website=f"https://www.{clean_name}.com",
        linkedin=f"https://linkedin.com/company/{clean_name}",
        description=(
            f"{company_name} is a leading provider of professional services to federal "
            "agencies, specializing in technology solutions, consulting services, and "
            "government contract management."
        ),
        specialities=list(SPECIALITIES),
    )
    return Enrichment(contacts=contacts, company_info=company_info)


def is_decision_maker(title: str) -> bool:
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in DECISION_MAKER_KEYWORDS)


def find_decision_makers(contacts: Iterable[Contact]) -> List[Contact]:
    return [contact for contact in contacts if is_decision_maker(contact.title)]


__all__ = [
    "DECISION_MAKER_KEYWORDS",
    "find_decision_makers",
    "generate_synthetic_enrichment",
    "is_decision_maker",
    "name_hash",
]
