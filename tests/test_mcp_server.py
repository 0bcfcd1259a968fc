"""Tests for the MCP tool functions."""

import asyncio

import pytest

import dupcheck.mcp_server as mcp_server

from conftest import make_orchestrator


@pytest.fixture(autouse=True)
def orchestrator(seeded_store, monkeypatch):
    orch = make_orchestrator(seeded_store)
    monkeypatch.setattr(mcp_server, "_orchestrator", orch)
    return orch


def test_search_contracts():
    result = mcp_server.search_contracts("site-001", "por-001", ["line-001", "line-004"])
    assert [c["id"] for c in result["contracts"]] == ["contract-001", "contract-002"]
    assert result["contracts"][0]["awardedDate"] == "2025-01-15"


def test_lookups():
    assert mcp_server.get_line_item("line-002")["costKind"] == "fixed"
    assert mcp_server.get_contract("contract-002")["contractNumber"] == "PO-2025-002"
    assert mcp_server.get_site("site-003")["name"] == "Airport Terminal"
    assert mcp_server.get_project_reference("por-002")["projectCode"] == "NET-2025-Q1"


def test_lookup_misses():
    assert mcp_server.get_line_item("line-999") == {"error": "Line item not found"}
    assert mcp_server.get_contract("contract-999") == {"error": "Contract not found"}


def test_check_duplicates():
    result = asyncio.run(
        mcp_server.check_duplicates("site-002", "por-002", [{"lineItemId": "line-005", "quantity": 1}])
    )
    assert result["outcome"] == "completed-with-duplicates"
    assert [d["existingContractId"] for d in result["duplicates"]] == ["contract-003", "contract-005"]
    assert result["summary"]["warningLevel"] == "medium"


def test_check_duplicates_rejects_missing_site():
    result = asyncio.run(mcp_server.check_duplicates("", "por-002", []))
    assert result["outcome"] == "rejected"
    assert result["error"]


def test_check_duplicates_rejects_bad_line_items():
    result = asyncio.run(mcp_server.check_duplicates("site-002", "por-002", [{"quantity": 1}]))
    assert result["outcome"] == "rejected"


def test_check_duplicates_accepts_fractional_quantity():
    result = asyncio.run(
        mcp_server.check_duplicates("site-001", "por-001", [{"lineItemId": "line-002", "quantity": 2.5}])
    )
    assert result["outcome"] == "completed-with-duplicates"
    assert result["duplicates"][0]["existingContractId"] == "contract-001"
