"""Shared fixtures for the duplicate checker test suite."""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from dupcheck.agents.judgment_oracle import SemanticDuplicateAssessor
from dupcheck.config import DEFAULT_RECORD_STORE_PATH
from dupcheck.models import (
    AwardProposal,
    ContractRecord,
    LineItemDefinition,
    LineItemEntry,
    OracleVerdict,
    ProjectReference,
    RecordSeed,
    Site,
)
from dupcheck.orchestrator import DuplicateCheckOrchestrator
from tools.record_store import RecordStore


DEFINITIONS = [
    LineItemDefinition(id="fiber-cable", name="Fiber Cable Run", cost_kind="variable"),
    LineItemDefinition(id="switch", name="Network Switch", cost_kind="fixed"),
    LineItemDefinition(id="rack", name="Equipment Rack", cost_kind="fixed"),
    LineItemDefinition(id="site-prep", name="Site Preparation", cost_kind="variable"),
]


class FakeOracle:
    """Records calls and answers with a fixed verdict or error."""

    def __init__(
        self,
        verdict: Optional[OracleVerdict] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.verdict = verdict
        self.error = error
        self.calls: list[tuple[str, str, Optional[str]]] = []

    async def judge(self, new_details, existing_details, context=None):
        self.calls.append((new_details, existing_details, context))
        if self.error is not None:
            raise self.error
        return self.verdict


def make_contract(
    contract_id: str,
    *entries: LineItemEntry,
    site_id: str = "site-a",
    project_ref_id: str = "por-a",
    status: str = "awarded",
) -> ContractRecord:
    return ContractRecord(
        id=contract_id,
        contract_number=f"PO-{contract_id}",
        site_id=site_id,
        project_ref_id=project_ref_id,
        status=status,
        line_items=tuple(entries),
        awarded_date="2025-01-01",
    )


def make_store(*contracts: ContractRecord) -> RecordStore:
    return RecordStore(
        RecordSeed(
            sites=[Site(id="site-a", name="Site A"), Site(id="site-b", name="Site B")],
            project_references=[
                ProjectReference(id="por-a", name="Project A", project_code="A-1"),
                ProjectReference(id="por-b", name="Project B", project_code="B-1"),
            ],
            line_items=list(DEFINITIONS),
            contracts=list(contracts),
        )
    )


def make_orchestrator(store: RecordStore, oracle=None) -> DuplicateCheckOrchestrator:
    return DuplicateCheckOrchestrator(
        store=store, assessor=SemanticDuplicateAssessor(oracle=oracle)
    )


def proposal(*entries: LineItemEntry, site_id="site-a", project_ref_id="por-a") -> AwardProposal:
    return AwardProposal(site_id=site_id, project_ref_id=project_ref_id, line_items=tuple(entries))


def collect_events(orchestrator: DuplicateCheckOrchestrator, award: AwardProposal) -> list:
    async def _collect():
        return [event async for event in orchestrator.evaluate(award)]

    return asyncio.run(_collect())


@pytest.fixture
def seeded_store() -> RecordStore:
    """Record store loaded from the bundled seed file."""
    return RecordStore.from_json_file(DEFAULT_RECORD_STORE_PATH)
