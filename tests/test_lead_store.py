from datetime import datetime, timezone
from pathlib import Path

import pytest

from app.clients.sqlite_store import LeadStore
from app.models.awards import Contact, Enrichment, RawAward
from app.services.aggregation import aggregate_by_company
from app.services.enrichment import generate_synthetic_enrichment
from app.services.leads import build_leads

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> LeadStore:
    return LeadStore(str(tmp_path / "leads.db"))


def _leads(contacts_by_name):
    awards = [
        RawAward(recipient_name="Acme Federal", recipient_uei="ACME1", award_amount=5_000_000.0),
        RawAward(recipient_name="Beta LLC", award_amount=10_000.0),
    ]
    companies = aggregate_by_company(awards, now=NOW)
    enrichments = {
        name: Enrichment(contacts=[Contact(name=contact, title="CEO") for contact in contacts])
        for name, contacts in contacts_by_name.items()
    }
    return build_leads(companies, enrichments, now=NOW)


def test_save_upserts_companies_and_replaces_contacts(store: LeadStore):
    assert store.save(_leads({"Acme Federal": ["Jane Doe", "John Roe"]})) == 2
    store.save(_leads({"Acme Federal": ["Sam Poe"]}))

    acme = store.get_company("ACME1")
    assert acme["company"]["company_name"] == "Acme Federal"
    assert [contact["name"] for contact in acme["contacts"]] == ["Sam Poe"]
    assert acme["sales_intelligence"]["relationship_strength"] == "New"

    beta = store.get_company("Beta LLC")
    assert beta["contacts"] == []
    assert store.get_company("missing") is None


def test_recent_searches_are_filtered_and_newest_first(store: LeadStore):
    first = store.record_search({"industry": "541512"}, 120, 40, user_id="user-1")
    second = store.record_search({"industry": "236220"}, 12, 4, user_id="user-1")
    store.record_search({"location": "VA"}, 3, 1)

    searches = store.recent_searches(user_id="user-1")

    assert [search["search_id"] for search in searches] == [second, first]
    assert searches[0]["filters"] == {"industry": "236220"}
    assert searches[0]["companies_found"] == 4
    assert len(store.recent_searches()) == 3
    assert len(store.recent_searches(limit=1)) == 1


def test_search_companies_filters_and_orders_by_score(store: LeadStore):
    awards = [
        RawAward(
            recipient_name="Acme Federal",
            recipient_uei="ACME1",
            recipient_state="VA",
            award_amount=5_000_000.0,
        ),
        RawAward(recipient_name="Beta LLC", recipient_state="MD", award_amount=10_000.0),
    ]
    leads = build_leads(
        aggregate_by_company(awards, now=NOW),
        {"Acme Federal": generate_synthetic_enrichment("Acme Federal")},
        now=NOW,
    )
    store.save(leads)
    scores = {
        lead.company.company_name: lead.sales_intelligence.opportunity_score for lead in leads
    }

    everything = store.search_companies()
    assert {lead["company"]["company_name"] for lead in everything} == set(scores)
    ranked = [lead["sales_intelligence"]["opportunity_score"] for lead in everything]
    assert ranked == sorted(ranked, reverse=True)

    in_virginia = store.search_companies(state="VA")
    assert [lead["company"]["uei"] for lead in in_virginia] == ["ACME1"]
    assert len(in_virginia[0]["contacts"]) == 2

    services = store.search_companies(industry="Professional Services")
    assert [lead["company"]["company_name"] for lead in services] == ["Acme Federal"]

    assert store.search_companies(min_score=max(scores.values()) + 1) == []
    assert len(store.search_companies(limit=1)) == 1
