import re

import pytest

from app.models.awards import Contact
from app.services.enrichment import (
    COMPANY_SIZES,
    find_decision_makers,
    generate_synthetic_enrichment,
    is_decision_maker,
    name_hash,
)


def test_synthetic_enrichment_is_deterministic():
    assert generate_synthetic_enrichment("Acme Federal, Inc.") == generate_synthetic_enrichment(
        "Acme Federal, Inc."
    )


def test_synthetic_contacts_follow_expected_formats():
    enrichment = generate_synthetic_enrichment("Acme Federal, Inc.")

    assert len(enrichment.contacts) == 2
    for contact in enrichment.contacts:
        assert re.fullmatch(r"\(555\) \d{3}-\d{4}", contact.phone)
        assert re.fullmatch(r"[a-z]+\.[a-z]+@acmefederalinc\.com", contact.email)
        assert contact.linkedin.startswith("https://linkedin.com/in/")
        assert contact.organization_name == "Acme Federal, Inc."
    assert enrichment.company_info.website == "https://www.acmefederalinc.com"
    assert enrichment.company_info.size in COMPANY_SIZES


def test_synthetic_values_derive_from_name_hash():
    name = "Abc"
    h = name_hash(name)
    assert h == 65 + 98 + 99

    first, second = generate_synthetic_enrichment(name).contacts

    assert first.phone == f"(555) {h % 900 + 100:03d}-{(h * 2) % 9000 + 1000:04d}"
    assert second.phone == f"(555) {(h + 100) % 900 + 100:03d}-{(h * 3) % 9000 + 1000:04d}"
    assert first.title == "Director of Federal Programs"
    assert second.title == "Business Development Manager"


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("CEO", True),
        ("Chief Operating Officer", True),
        ("VP of Federal Sales", True),
        ("Vice President, Growth", True),
        ("Director of Federal Programs", True),
        ("Contracts Administrator", False),
        ("Business Development Manager", False),
        ("", False),
    ],
)
def test_is_decision_maker(title, expected):
    assert is_decision_maker(title) is expected


def test_find_decision_makers_filters_contacts():
    contacts = [
        Contact(name="A", title="President"),
        Contact(name="B", title="Analyst"),
        Contact(name="C", title="CFO"),
    ]

    assert [contact.name for contact in find_decision_makers(contacts)] == ["A", "C"]
