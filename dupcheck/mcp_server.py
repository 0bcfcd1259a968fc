"""MCP Server for the Award Duplicate Checker.

This module implements a Model Context Protocol (MCP) server that exposes
the record store query surface and the duplicate check itself as tools,
so MCP-compliant assistants can look up contracts and vet an award before
it is made.
"""

from typing import Any, Dict, List, Optional

import msgspec
from dotenv import load_dotenv
from loguru import logger
from mcp.server.fastmcp import FastMCP

from dupcheck.error_handling import DuplicateCheckError
from dupcheck.models import AwardProposal, LineItemEntry
from dupcheck.orchestrator import DuplicateCheckOrchestrator, create_orchestrator

# Load environment variables
load_dotenv()

# Initialize MCP server
mcp = FastMCP("Award Duplicate Checker MCP")

_orchestrator: Optional[DuplicateCheckOrchestrator] = None


def get_orchestrator() -> DuplicateCheckOrchestrator:
    """Lazy initialization of the orchestrator used by the tools."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator()
        logger.info("MCP Server initialized with duplicate check orchestrator")
    return _orchestrator


@mcp.tool()
def search_contracts(site_id: str, por_id: str, line_item_ids: List[str]) -> Dict[str, Any]:
    """Search for existing awarded contracts matching site, POR, and line items.

    Args:
        site_id: The site ID to search for.
        por_id: The POR (project reference) ID.
        line_item_ids: Line item IDs to check for duplicates.

    Returns:
        Matching contracts with their line items and award dates.
    """
    store = get_orchestrator().store
    contracts = store.search_contracts(
        site_id=site_id, project_ref_id=por_id, line_item_ids=line_item_ids
    )
    return {
        "contracts": [
            {
                "id": c.id,
                "contractNumber": c.contract_number,
                "lineItems": msgspec.to_builtins(c.line_items),
                "awardedDate": c.awarded_date,
            }
            for c in contracts
        ]
    }


@mcp.tool()
def get_line_item(line_item_id: str) -> Dict[str, Any]:
    """Get details about a specific line item.

    Args:
        line_item_id: The line item ID.
    """
    line_item = get_orchestrator().store.get_line_item(line_item_id)
    return msgspec.to_builtins(line_item) if line_item else {"error": "Line item not found"}


@mcp.tool()
def get_contract(contract_id: str) -> Dict[str, Any]:
    """Get details about a specific contract.

    Args:
        contract_id: The contract ID.
    """
    contract = get_orchestrator().store.get_contract(contract_id)
    return msgspec.to_builtins(contract) if contract else {"error": "Contract not found"}


@mcp.tool()
def get_site(site_id: str) -> Dict[str, Any]:
    """Get details about a site."""
    site = get_orchestrator().store.get_site(site_id)
    return msgspec.to_builtins(site) if site else {"error": "Site not found"}


@mcp.tool()
def get_project_reference(por_id: str) -> Dict[str, Any]:
    """Get details about a POR (project reference)."""
    por = get_orchestrator().store.get_project_reference(por_id)
    return msgspec.to_builtins(por) if por else {"error": "POR not found"}


@mcp.tool()
async def check_duplicates(
    site_id: str,
    por_id: str,
    line_items: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Check a prospective award for line items that duplicate awarded contracts.

    Args:
        site_id: Site of the award.
        por_id: POR (project reference) of the award.
        line_items: Proposed items, each {"lineItemId", "quantity"?, "details"?}.

    Returns:
        Outcome, findings and summary of the duplicate check.
    """
    try:
        entries = msgspec.convert(line_items, type=tuple[LineItemEntry, ...])
    except msgspec.ValidationError as e:
        return {"outcome": "rejected", "error": f"Invalid line items: {e}"}

    proposal = AwardProposal(site_id=site_id, project_ref_id=por_id, line_items=entries)

    try:
        result = await get_orchestrator().run(proposal)
    except DuplicateCheckError as e:
        logger.error(f"Duplicate check failed: {e}")
        return {"outcome": "rejected", "error": str(e)}

    return {
        "outcome": result.outcome,
        "error": result.error,
        "duplicates": msgspec.to_builtins(result.findings),
        "summary": msgspec.to_builtins(result.summary) if result.summary else None,
    }


if __name__ == "__main__":
    mcp.run()
