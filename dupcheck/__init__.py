"""Award Duplicate Checker - duplicate detection for contract awards."""

from dupcheck.models import (
    Site,
    ProjectReference,
    LineItemDefinition,
    LineItemEntry,
    ContractRecord,
    AwardProposal,
    DuplicateFinding,
    EvaluationSummary,
    OracleVerdict,
    SemanticAssessment,
    StatusEvent,
    DuplicateWarningEvent,
    DuplicateSummaryEvent,
    NarrativeEvent,
    StreamEvent,
)

from dupcheck.logging_config import (
    setup_logging,
    get_request_logger,
    log_component_execution,
    log_tool_execution,
)

from dupcheck.error_handling import (
    DuplicateCheckError,
    InvalidProposalError,
    RecordStoreError,
    OracleError,
    ConfigurationError,
    RetryConfig,
    ORACLE_RETRY_CONFIG,
    retry_with_backoff,
    handle_errors,
)

from dupcheck.config import Settings, load_settings


__version__ = "0.1.0"

__all__ = [
    # Models
    "Site",
    "ProjectReference",
    "LineItemDefinition",
    "LineItemEntry",
    "ContractRecord",
    "AwardProposal",
    "DuplicateFinding",
    "EvaluationSummary",
    "OracleVerdict",
    "SemanticAssessment",
    "StatusEvent",
    "DuplicateWarningEvent",
    "DuplicateSummaryEvent",
    "NarrativeEvent",
    "StreamEvent",
    # Logging
    "setup_logging",
    "get_request_logger",
    "log_component_execution",
    "log_tool_execution",
    # Error Handling
    "DuplicateCheckError",
    "InvalidProposalError",
    "RecordStoreError",
    "OracleError",
    "ConfigurationError",
    "RetryConfig",
    "ORACLE_RETRY_CONFIG",
    "retry_with_backoff",
    "handle_errors",
    # Configuration
    "Settings",
    "load_settings",
]
