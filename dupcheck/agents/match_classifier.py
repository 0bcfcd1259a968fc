"""
Match Classifier - finds proposed line items already covered by awarded contracts.

Only awarded contracts at the proposal's site/project pair are candidates.
Overlaps are reported per proposed entry, in proposal order, and tagged with
the match type their line-item definition implies:
- Fixed-cost definitions -> exact match
- Variable-cost definitions -> semantic match (needs the Judgment Oracle)
"""

from typing import List, Optional

from msgspec import Struct

from dupcheck.error_handling import InvalidProposalError
from dupcheck.logging_config import get_request_logger, log_component_execution
from dupcheck.models import (
    AwardProposal,
    ContractRecord,
    LineItemDefinition,
    LineItemEntry,
    MatchType,
)
from tools.record_store import RecordStore


class Overlap(Struct, frozen=True):
    """A proposed entry together with the awarded contracts that already contain it."""
    entry: LineItemEntry
    definition: Optional[LineItemDefinition]
    contracts: tuple[ContractRecord, ...]

    @property
    def match_type(self) -> Optional[MatchType]:
        if self.definition is None:
            return None
        return "exact" if self.definition.cost_kind == "fixed" else "semantic"


def validate_proposal(proposal: AwardProposal) -> None:
    """Reject proposals without a site or project reference.

    Raises:
        InvalidProposalError: If either identifier is missing or blank
    """
    if not proposal.site_id or not proposal.site_id.strip():
        raise InvalidProposalError("Award proposal is missing a site identifier")
    if not proposal.project_ref_id or not proposal.project_ref_id.strip():
        raise InvalidProposalError("Award proposal is missing a project reference identifier")


class MatchClassifier:
    """Pipeline: Proposal -> Store search -> Per-entry grouping -> Overlaps"""

    def __init__(self, store: RecordStore):
        self.store = store

    @log_component_execution("MatchClassifier")
    def find_overlaps(
        self,
        proposal: AwardProposal,
        request_id: Optional[str] = None
    ) -> List[Overlap]:
        """Group awarded contracts overlapping the proposal by proposed entry.

        Args:
            proposal: Award proposal to check
            request_id: Evaluation request identifier for logging

        Returns:
            One Overlap per proposed entry that has at least one candidate
            contract, in proposal order

        Raises:
            InvalidProposalError: If the proposal lacks site or project identifiers
        """
        validate_proposal(proposal)
        request_logger = get_request_logger(request_id or "unknown", "MatchClassifier")

        if not proposal.line_items:
            request_logger.debug("Proposal has no line items, nothing to match")
            return []

        candidates = self.store.search_contracts(
            site_id=proposal.site_id,
            project_ref_id=proposal.project_ref_id,
            line_item_ids=[entry.line_item_id for entry in proposal.line_items],
        )

        overlaps = []
        for entry in proposal.line_items:
            contracts = tuple(c for c in candidates if c.has_line_item(entry.line_item_id))
            if not contracts:
                continue
            overlaps.append(
                Overlap(
                    entry=entry,
                    definition=self.store.get_line_item(entry.line_item_id),
                    contracts=contracts,
                )
            )

        request_logger.info(
            "Overlap search complete",
            candidate_contracts=len(candidates),
            overlapping_entries=len(overlaps)
        )
        return overlaps
