"""
Data Models - msgspec Structs for efficient serialization.

These models define the reference data held by the Record Store, the
per-request award proposal, the findings produced by the pipeline and the
events streamed back to the caller. Using msgspec provides:
- Fast JSON serialization/deserialization
- Type validation at runtime (seed data, oracle output)
- camelCase wire names without hand-written converters
"""

from typing import Annotated, List, Literal, Optional, Union
from msgspec import Meta, Struct


CostKind = Literal["fixed", "variable"]
ContractStatus = Literal["awarded", "pending", "cancelled"]
MatchType = Literal["exact", "semantic"]
WarningLevel = Literal["low", "medium", "high"]

UnitScore = Annotated[float, Meta(ge=0.0, le=1.0)]


# Reference data (seeded once, read-only)

class Site(Struct, frozen=True, rename="camel"):
    """Physical site where contracted work is performed."""
    id: str
    name: str


class ProjectReference(Struct, frozen=True, rename="camel"):
    """Procurement project (POR) grouping contracts."""
    id: str
    name: str
    project_code: str


class LineItemDefinition(Struct, frozen=True, rename="camel"):
    """Catalogue entry for a billable line item."""
    id: str
    name: str
    cost_kind: CostKind


class LineItemEntry(Struct, frozen=True, rename="camel", omit_defaults=True):
    """A line item as it appears on a contract or a proposal."""
    line_item_id: str
    quantity: Optional[Union[int, float]] = None
    details: Optional[str] = None


class ContractRecord(Struct, frozen=True, rename="camel"):
    """Existing contract with its line items and lifecycle status."""
    id: str
    contract_number: str
    site_id: str
    project_ref_id: str
    status: ContractStatus
    line_items: tuple[LineItemEntry, ...]
    awarded_date: str

    def has_line_item(self, line_item_id: str) -> bool:
        return any(entry.line_item_id == line_item_id for entry in self.line_items)


class RecordSeed(Struct, rename="camel"):
    """Layout of the seed file loaded into the Record Store."""
    sites: List[Site] = []
    project_references: List[ProjectReference] = []
    line_items: List[LineItemDefinition] = []
    contracts: List[ContractRecord] = []


# Per-request data

class AwardProposal(Struct, frozen=True, rename="camel"):
    """Prospective award submitted for duplicate evaluation."""
    site_id: str
    project_ref_id: str
    line_items: tuple[LineItemEntry, ...] = ()


class DuplicateFinding(Struct, frozen=True, rename="camel", omit_defaults=True):
    """A proposed line item that overlaps an existing awarded contract."""
    line_item_id: str
    line_item_name: str
    existing_contract_id: str
    existing_contract_number: str
    match_type: MatchType
    similarity_score: Optional[float] = None
    ai_reasoning: Optional[str] = None


class EvaluationSummary(Struct, frozen=True, rename="camel", omit_defaults=True):
    """Aggregate outcome of one evaluation."""
    total_duplicates: int
    total_line_items: int
    warning_level: Optional[WarningLevel] = None


# Judgment Oracle

class OracleVerdict(Struct, frozen=True):
    """Structured answer expected from the Judgment Oracle."""
    similarity_score: UnitScore
    is_duplicate: bool
    reasoning: str


class SemanticAssessment(Struct, frozen=True):
    """Outcome of comparing a variable-cost entry against prior contracts."""
    is_duplicate: bool
    similarity_score: float
    reasoning: str
    matching_contract_id: Optional[str] = None
    used_fallback: bool = False


# Stream events

class StatusEvent(Struct, frozen=True, tag="status", tag_field="type"):
    """Opening status message."""
    text: str


class DuplicateWarningEvent(
    Struct, frozen=True, tag="duplicate-warning", tag_field="type", rename="camel"
):
    """All findings of the evaluation, requiring acknowledgment."""
    duplicates: List[DuplicateFinding]
    requires_acknowledgment: bool = True


class DuplicateSummaryEvent(
    Struct, frozen=True, tag="duplicate-summary", tag_field="type", rename="camel"
):
    """Counts and warning level for a non-empty finding list."""
    total_duplicates: int
    total_line_items: int
    warning_level: WarningLevel


class NarrativeEvent(Struct, frozen=True, tag="narrative", tag_field="type"):
    """Closing human-readable message."""
    text: str


StreamEvent = Union[StatusEvent, DuplicateWarningEvent, DuplicateSummaryEvent, NarrativeEvent]
