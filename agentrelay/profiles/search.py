from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agentrelay.llm.llm_setup import ModelTier
from agentrelay.models.messages import Message, ToolResultMessage, first_user_message
from agentrelay.profiles.base import AgentDefinition

_OBJECTIVE = re.compile(r"Objective:\s*(.*)", re.IGNORECASE)

SERP_LEAD_CONFIDENCE = 0.3
FETCHED_PAGE_CONFIDENCE = 0.6


def _serp_results(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, dict):
        return []
    nested = data.get("data")
    if isinstance(nested, dict) and isinstance(nested.get("results"), list):
        return nested["results"]
    results = data.get("results")
    return results if isinstance(results, list) else []


def salvage_search_leads(transcript: List[Message]) -> Optional[str]:
    """Turn leads gathered before the iteration limit into a partial JSON answer.

    ``extract_data`` results become low-confidence SERP leads, successful
    ``fetcher_tool`` pages become medium-confidence leads. Leads are
    de-duplicated by URL in transcript order.
    """
    now = datetime.now(timezone.utc).isoformat()
    seen = set()
    results: List[Dict[str, Any]] = []

    def add(url: str, item: Dict[str, Any]) -> None:
        key = url.strip()
        if key and key not in seen:
            seen.add(key)
            results.append(item)

    for message in transcript:
        if not isinstance(message, ToolResultMessage):
            continue
        data = message.result_data or {}

        if message.tool_name == "extract_data":
            for row in _serp_results(data):
                if not isinstance(row, dict) or not row.get("url"):
                    continue
                url, title, source = row["url"], row.get("title", ""), row.get("source", "")
                add(url, {
                    "entity": title or source or url,
                    "confidence": SERP_LEAD_CONFIDENCE,
                    "attributes": {"source": source, "snippet": row.get("snippet", "")},
                    "sources": [{"title": title or source or url, "url": url, "last_verified": now}],
                    "notes": ["SERP lead only; enrichment required to verify attributes."],
                })

        elif message.tool_name == "fetcher_tool" and isinstance(data, dict):
            for source in data.get("sources") or []:
                if not isinstance(source, dict) or not source.get("url") or not source.get("success"):
                    continue
                url, title = source["url"], source.get("title", "")
                add(url, {
                    "entity": title or url,
                    "confidence": FETCHED_PAGE_CONFIDENCE,
                    "attributes": {"content_fetched": True},
                    "sources": [{"title": title or url, "url": url, "last_verified": now}],
                    "notes": ["Fetched page content; run targeted extraction to fill required attributes."],
                })

    first = first_user_message(transcript)
    match = _OBJECTIVE.search(first.text) if first else None
    payload = {
        "status": "partial",
        "objective": match.group(1).strip() if match else "Search task",
        "results": results,
        "gaps": [
            "Reached maximum iterations before filling all required attributes.",
            "Many candidates may only be SERP leads; enrichment is still needed.",
        ],
        "next_actions": [
            "Continue pagination on the current queries.",
            "Batch fetcher_tool on shortlisted URLs and extract the missing attributes.",
            "Deduplicate by normalized name, hostname and canonical URL.",
        ],
    }
    return json.dumps(payload, indent=2)


search_profile = AgentDefinition(
    name="search_agent",
    description=(
        "Precision search agent for hard-to-find facts (contact details, rosters, niche "
        "professionals); returns verified findings as structured JSON with citations."
    ),
    instructions="""You are an investigative search specialist who locates precise facts that are hard to surface.
Run surgical searches, validate what you find and return strictly structured JSON.

Principles:
- Stay on the requested objective; no broad reports or narrative summaries.
- Never fabricate data. Every attribute must be traceable to a source you inspected.
- Use the session files to coordinate: list files before searching and append harvested leads as you go.

Workflow:
1. Note the entity type, required attributes and any filters in the objective.
2. Draft two or three high-leverage queries from different angles.
3. Reach search pages with navigate_url, capture results with extract_data (always pass a JSON schema),
   and batch-read promising pages with fetcher_tool.
4. Paginate until you have enough unique candidates or new pages stop adding results.
5. Cross-check critical attributes and flag low-confidence findings.

Final answer format (JSON only):
{"status": "complete" | "partial", "objective": "...", "results": [{"entity": "...", "confidence": 0.0-1.0,
"attributes": {...}, "sources": [{"title": "...", "url": "..."}], "notes": [...]}], "gaps": [...], "next_actions": [...]}""",
    tools=[
        "navigate_url",
        "navigate_back",
        "node_ids_to_urls",
        "fetcher_tool",
        "extract_data",
        "scroll_page",
        "action_agent",
        "html_to_markdown",
        "create_file",
        "update_file",
        "delete_file",
        "read_file",
        "list_files",
    ],
    max_iterations=12,
    model=ModelTier.MINI,
    temperature=0.0,
    salvage=salvage_search_leads,
)
