"""
LangGraph workflow definition for the contractor search pipeline.

Each node reports its progress before doing any work; reporting fails with
``JobCancelledError`` once the job record has been removed, which ends the run
between steps.
"""

from __future__ import annotations

import logging
from typing import Any

from langgraph.graph import END, START, StateGraph

from app.models.job import TOTAL_STEPS, JobProgress
from app.services.aggregation import aggregate_by_company
from app.services.leads import build_leads, summarize_result
from workers.search_jobs.models import SearchState
from workers.search_jobs.tools import SearchTools

logger = logging.getLogger(__name__)


# step name -> (step index, percentage)
PIPELINE_STEPS = {
    "searching": (1, 20),
    "aggregating": (2, 40),
    "enriching": (3, 60),
    "analyzing": (4, 80),
    "saving": (5, 90),
}


def _progress(step: str, message: str) -> JobProgress:
    current, percentage = PIPELINE_STEPS[step]
    return JobProgress(
        step=step,
        current=current,
        total=TOTAL_STEPS,
        percentage=percentage,
        message=message,
    )


def completion_progress(message: str) -> JobProgress:
    return JobProgress(
        step="complete",
        current=TOTAL_STEPS,
        total=TOTAL_STEPS,
        percentage=100,
        message=message,
    )


async def _search(state: SearchState, tools: SearchTools) -> SearchState:
    """Query the award search provider with the job's filters."""
    job = tools.report_progress(
        state["job"], _progress("searching", "Searching USASpending.gov for contractors...")
    )
    state["job"] = job
    awards = await tools.search_awards(job.payload)
    state["awards"] = awards
    if not awards:
        state["result"] = summarize_result([], total_contracts=0)
        state["message"] = "No results found"
    return state


def _route_after_search(state: SearchState) -> str:
    return "aggregate" if state.get("awards") else END


async def _aggregate(state: SearchState, tools: SearchTools) -> SearchState:
    awards = state["awards"]
    state["job"] = tools.report_progress(
        state["job"],
        _progress(
            "aggregating", f"Found {len(awards)} contracts, aggregating by company..."
        ),
    )
    companies = aggregate_by_company(awards)
    logger.info(
        "Aggregated %d contracts into %d companies",
        len(awards),
        len(companies),
        extra={"job_id": state["job"].job_id},
    )
    state["companies"] = companies
    return state


async def _enrich(state: SearchState, tools: SearchTools) -> SearchState:
    companies = state["companies"]
    batch = min(tools.enrichment_company_limit, len(companies))
    job = tools.report_progress(
        state["job"],
        _progress("enriching", f"Enriching {batch} companies with contact data..."),
    )
    state["job"] = job
    state["enrichments"] = await tools.enrich_companies(companies, job_id=job.job_id)
    return state


async def _analyze(state: SearchState, tools: SearchTools) -> SearchState:
    state["job"] = tools.report_progress(
        state["job"],
        _progress("analyzing", "Calculating sales intelligence scores..."),
    )
    state["leads"] = build_leads(state["companies"], state.get("enrichments") or {})
    return state


async def _save(state: SearchState, tools: SearchTools) -> SearchState:
    job = tools.report_progress(
        state["job"], _progress("saving", "Saving results to database...")
    )
    state["job"] = job
    leads = state["leads"]
    awards = state["awards"]
    tools.persist(
        leads=leads,
        filters=job.payload,
        raw_count=len(awards),
        user_id=job.user_id,
        job_id=job.job_id,
    )
    state["result"] = summarize_result(leads, total_contracts=len(awards))
    state["message"] = f"Found {len(leads)} leads from {len(awards)} contracts"
    return state


def create_search_graph(tools: SearchTools) -> Any:
    """Compile and return the search LangGraph workflow."""
    graph = StateGraph(SearchState)

    async def search_node(state: SearchState) -> SearchState:
        return await _search(state, tools)

    async def aggregate_node(state: SearchState) -> SearchState:
        return await _aggregate(state, tools)

    async def enrich_node(state: SearchState) -> SearchState:
        return await _enrich(state, tools)

    async def analyze_node(state: SearchState) -> SearchState:
        return await _analyze(state, tools)

    async def save_node(state: SearchState) -> SearchState:
        return await _save(state, tools)

    graph.add_node("search", search_node)
    graph.add_node("aggregate", aggregate_node)
    graph.add_node("enrich", enrich_node)
    graph.add_node("analyze", analyze_node)
    graph.add_node("save", save_node)

    graph.add_edge(START, "search")
    graph.add_conditional_edges("search", _route_after_search, ["aggregate", END])
    graph.add_edge("aggregate", "enrich")
    graph.add_edge("enrich", "analyze")
    graph.add_edge("analyze", "save")
    graph.add_edge("save", END)
    return graph.compile()


__all__ = ["PIPELINE_STEPS", "completion_progress", "create_search_graph"]
