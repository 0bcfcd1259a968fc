"""
Duplicate Check Orchestrator - evaluation pipeline coordinator.

Runs one award proposal through the pipeline and streams events:
    Validate -> Search (Match Classifier) -> Per-item assessment -> Summary

Key Features:
- Events are yielded as soon as they are ready (async generator)
- Findings keep proposal order; line items are assessed sequentially
- Oracle failures are absorbed by the assessor's keyword fallback
- Consumer disconnects cancel the generator and any in-flight oracle call
"""

import asyncio
import time
import uuid
from typing import AsyncIterator, List, Literal, Optional

from loguru import logger
from msgspec import Struct

from dupcheck.agents.judgment_oracle import GeminiJudgmentOracle, SemanticDuplicateAssessor
from dupcheck.agents.match_classifier import MatchClassifier, Overlap, validate_proposal
from dupcheck.config import Settings, load_settings
from dupcheck.error_handling import InvalidProposalError, RetryConfig
from dupcheck.logging_config import get_request_logger
from dupcheck.models import (
    AwardProposal,
    DuplicateFinding,
    DuplicateSummaryEvent,
    DuplicateWarningEvent,
    EvaluationSummary,
    NarrativeEvent,
    StatusEvent,
    StreamEvent,
    WarningLevel,
)
from tools.record_store import RecordStore


Outcome = Literal["completed-with-duplicates", "completed-clean", "rejected"]


class EvaluationResult(Struct):
    """A fully collected evaluation, used by the harness and the MCP tool."""
    outcome: Outcome
    findings: List[DuplicateFinding]
    summary: Optional[EvaluationSummary]
    events: List[StreamEvent]
    error: Optional[str] = None
    duration_seconds: float = 0.0


def warning_level_for(duplicate_count: int) -> Optional[WarningLevel]:
    """1 -> low, 2-3 -> medium, 4+ -> high; no level without duplicates."""
    if duplicate_count <= 0:
        return None
    if duplicate_count == 1:
        return "low"
    if duplicate_count <= 3:
        return "medium"
    return "high"


def build_summary(findings: List[DuplicateFinding], total_line_items: int) -> EvaluationSummary:
    return EvaluationSummary(
        total_duplicates=len(findings),
        total_line_items=total_line_items,
        warning_level=warning_level_for(len(findings))
    )


def status_text(proposal: AwardProposal) -> str:
    return (
        "Checking for duplicates in award:\n"
        f"- Site: {proposal.site_id}\n"
        f"- POR: {proposal.project_ref_id}\n"
        f"- Line Items: {len(proposal.line_items)}\n\n"
        "Analyzing existing contracts..."
    )


def narrative_text(summary: EvaluationSummary) -> str:
    if summary.total_duplicates:
        return (
            "\n\n⚠️ **Duplicate Check Complete**\n\n"
            f"Found {summary.total_duplicates} duplicate line item(s) that match existing "
            "contracts. Please review the details below."
        )
    return (
        "\n\n✅ **Duplicate Check Complete**\n\n"
        f"No duplicates found! All {summary.total_line_items} line item(s) are unique for "
        "this Site and POR. You can proceed with the award."
    )


class DuplicateCheckOrchestrator:
    """
    Coordinates the Match Classifier and the semantic assessor for one proposal.

    Holds no per-request state; every call to `evaluate` is independent.
    """

    def __init__(
        self,
        store: RecordStore,
        assessor: SemanticDuplicateAssessor,
        classifier: Optional[MatchClassifier] = None
    ):
        """Initialize the orchestrator.

        Args:
            store: Read-only record store
            assessor: Semantic duplicate assessor (oracle + fallback)
            classifier: Match classifier (built from the store if not provided)
        """
        self.store = store
        self.assessor = assessor
        self.classifier = classifier or MatchClassifier(store)

        logger.info(
            "DuplicateCheckOrchestrator initialized",
            oracle_enabled=assessor.oracle is not None
        )

    def validate_proposal(self, proposal: AwardProposal) -> None:
        """Raise InvalidProposalError for a structurally invalid proposal."""
        validate_proposal(proposal)

    async def evaluate(
        self,
        proposal: AwardProposal,
        request_id: Optional[str] = None
    ) -> AsyncIterator[StreamEvent]:
        """Evaluate a proposal, yielding events in order.

        Order: status, then duplicate-warning and duplicate-summary when
        there are findings, then narrative.

        Args:
            proposal: Award proposal to evaluate
            request_id: Identifier used to correlate logs (generated if omitted)

        Yields:
            Stream events

        Raises:
            InvalidProposalError: Before any event, if the proposal is invalid
        """
        request_id = request_id or str(uuid.uuid4())
        request_logger = get_request_logger(request_id, "DuplicateCheckOrchestrator")

        self.validate_proposal(proposal)

        request_logger.info(
            "Starting duplicate evaluation",
            site_id=proposal.site_id,
            project_ref_id=proposal.project_ref_id,
            line_item_count=len(proposal.line_items)
        )

        try:
            yield StatusEvent(text=status_text(proposal))

            overlaps = self.classifier.find_overlaps(proposal, request_id=request_id)

            findings: List[DuplicateFinding] = []
            for overlap in overlaps:
                findings.extend(await self._assess_overlap(proposal, overlap, request_id))

            summary = build_summary(findings, len(proposal.line_items))

            if findings:
                yield DuplicateWarningEvent(duplicates=findings, requires_acknowledgment=True)
                yield DuplicateSummaryEvent(
                    total_duplicates=summary.total_duplicates,
                    total_line_items=summary.total_line_items,
                    warning_level=summary.warning_level
                )

            yield NarrativeEvent(text=narrative_text(summary))

            request_logger.info(
                "Duplicate evaluation complete",
                total_duplicates=summary.total_duplicates,
                warning_level=summary.warning_level
            )

        except (asyncio.CancelledError, GeneratorExit):
            request_logger.info("Evaluation abandoned by consumer")
            raise

    async def _assess_overlap(
        self,
        proposal: AwardProposal,
        overlap: Overlap,
        request_id: str
    ) -> List[DuplicateFinding]:
        """Findings for one proposed entry."""
        definition = overlap.definition
        if definition is None:
            # Unknown line item: nothing to compare against
            return []

        if overlap.match_type == "exact":
            return [
                DuplicateFinding(
                    line_item_id=overlap.entry.line_item_id,
                    line_item_name=definition.name,
                    existing_contract_id=contract.id,
                    existing_contract_number=contract.contract_number,
                    match_type="exact"
                )
                for contract in overlap.contracts
            ]

        assessment = await self.assessor.assess(
            overlap.entry,
            overlap.contracts,
            context=self._oracle_context(proposal, definition.name),
            request_id=request_id
        )
        if not assessment.is_duplicate or not assessment.matching_contract_id:
            return []

        contract = next(
            (c for c in overlap.contracts if c.id == assessment.matching_contract_id),
            None
        )
        return [
            DuplicateFinding(
                line_item_id=overlap.entry.line_item_id,
                line_item_name=definition.name,
                existing_contract_id=assessment.matching_contract_id,
                existing_contract_number=contract.contract_number if contract else "",
                match_type="semantic",
                similarity_score=assessment.similarity_score,
                ai_reasoning=assessment.reasoning
            )
        ]

    def _oracle_context(self, proposal: AwardProposal, line_item_name: str) -> str:
        site = self.store.get_site(proposal.site_id)
        por = self.store.get_project_reference(proposal.project_ref_id)
        return (
            f"Line item: {line_item_name}\n"
            f"Site: {site.name if site else proposal.site_id}\n"
            f"POR: {por.name if por else proposal.project_ref_id}"
        )

    async def run(
        self,
        proposal: AwardProposal,
        request_id: Optional[str] = None
    ) -> EvaluationResult:
        """Collect a whole evaluation into an EvaluationResult.

        Invalid proposals produce a `rejected` result instead of raising.
        """
        start_time = time.time()
        events: List[StreamEvent] = []
        try:
            async for event in self.evaluate(proposal, request_id=request_id):
                events.append(event)
        except InvalidProposalError as e:
            return EvaluationResult(
                outcome="rejected",
                findings=[],
                summary=None,
                events=[],
                error=str(e),
                duration_seconds=time.time() - start_time
            )

        findings: List[DuplicateFinding] = []
        for event in events:
            if isinstance(event, DuplicateWarningEvent):
                findings = list(event.duplicates)

        return EvaluationResult(
            outcome="completed-with-duplicates" if findings else "completed-clean",
            findings=findings,
            summary=build_summary(findings, len(proposal.line_items)),
            events=events,
            duration_seconds=time.time() - start_time
        )


def create_orchestrator(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    oracle=None
) -> DuplicateCheckOrchestrator:
    """Factory function to create an orchestrator from settings.

    A Gemini oracle is created when an API key is configured and no oracle is
    injected; without either, semantic checks run on the keyword fallback.

    Args:
        settings: Settings (loaded from the environment if omitted)
        store: Record store (seeded from settings.record_store_path if omitted)
        oracle: Judgment Oracle to use instead of Gemini

    Returns:
        Configured DuplicateCheckOrchestrator
    """
    settings = settings or load_settings()
    store = store or RecordStore.from_json_file(settings.record_store_path)

    if oracle is None and settings.google_api_key:
        oracle = GeminiJudgmentOracle(
            api_key=settings.google_api_key,
            model_name=settings.gemini_model,
            timeout_seconds=settings.oracle_timeout_seconds,
            retry_config=RetryConfig(attempts=settings.oracle_retry_attempts)
        )
    elif oracle is None:
        logger.warning("GOOGLE_API_KEY not set, semantic checks will use keyword similarity only")

    assessor = SemanticDuplicateAssessor(
        oracle=oracle,
        duplicate_threshold=settings.semantic_duplicate_threshold,
        keyword_threshold=settings.keyword_duplicate_threshold
    )
    return DuplicateCheckOrchestrator(store=store, assessor=assessor)
