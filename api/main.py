"""
FastAPI Backend for the Award Duplicate Checker.

This module provides the HTTP layer for the duplicate checking pipeline:
- Streaming duplicate check for a prospective award (NDJSON events)
- Read-only record viewer (sites, PORs, line items, contracts)
- Rate limiting and security headers

Architecture:
    Client -> FastAPI -> Orchestrator -> Match Classifier / Judgment Oracle -> Event stream
"""

import time
import uuid
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Union

import msgspec
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from dupcheck.config import load_settings
from dupcheck.error_handling import ConfigurationError, DuplicateCheckError, InvalidProposalError
from dupcheck.logging_config import setup_logging
from dupcheck.models import AwardProposal, LineItemEntry
from dupcheck.orchestrator import DuplicateCheckOrchestrator, create_orchestrator
from api.security import get_security_headers, get_tls_config, validate_environment_security

settings = load_settings()

setup_logging(
    log_dir=settings.log_dir,
    level=settings.log_level,
    json_logs=settings.log_json,
    rotation="100 MB",
    retention="30 days",
)


# =============================================================================
# FastAPI Application Setup
# =============================================================================

app = FastAPI(
    title="Award Duplicate Checker",
    description="Detects contract line items that duplicate previously awarded work",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

_event_encoder = msgspec.json.Encoder()


# =============================================================================
# Middleware Stack
# =============================================================================

LOCAL_CLIENTS = ("127.0.0.1", "localhost", "::1")

# Sliding-window rate limiter: client IP -> timestamps inside the window
request_counts: Dict[str, List[float]] = {}


def prune_request_counts(now: float) -> None:
    """Forget clients whose latest request has left the window."""
    window = settings.rate_limit_window_seconds
    idle = [ip for ip, stamps in request_counts.items() if not stamps or now - stamps[-1] >= window]
    for client_ip in idle:
        del request_counts[client_ip]


@app.middleware("http")
async def rate_limit_middleware(request, call_next):
    """Per-IP sliding window limit from RATE_LIMIT_REQUESTS/RATE_LIMIT_WINDOW. Localhost is exempt."""
    client_ip = request.client.host if request.client else "unknown"

    if client_ip in LOCAL_CLIENTS:
        return await call_next(request)

    now = time.time()
    prune_request_counts(now)

    recent = [
        ts for ts in request_counts.get(client_ip, [])
        if now - ts < settings.rate_limit_window_seconds
    ]
    if len(recent) >= settings.rate_limit_requests:
        request_counts[client_ip] = recent
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests. Please try again later."},
        )

    recent.append(now)
    request_counts[client_ip] = recent
    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request, call_next):
    """Inject security headers (CSP, X-Frame-Options, etc.) into all responses."""
    response = await call_next(request)
    for header, value in get_security_headers().items():
        response.headers[header] = value
    return response


@app.exception_handler(DuplicateCheckError)
async def duplicate_check_exception_handler(request: Request, exc: DuplicateCheckError):
    """Map domain errors to JSON responses. Invalid proposals are client errors."""
    status_code = 400 if isinstance(exc, InvalidProposalError) else 500
    logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


# =============================================================================
# Orchestrator Singleton
# =============================================================================

orchestrator: Optional[DuplicateCheckOrchestrator] = None


def get_orchestrator() -> DuplicateCheckOrchestrator:
    """Lazy initialization of the duplicate check orchestrator singleton."""
    global orchestrator
    if orchestrator is None:
        orchestrator = create_orchestrator(settings)
        logger.info("Orchestrator initialized")
    return orchestrator


# =============================================================================
# Request Models
# =============================================================================


class LineItemRequest(BaseModel):
    """Proposed line item: quantity for fixed-cost, details for variable-cost."""

    model_config = ConfigDict(populate_by_name=True)

    line_item_id: str = Field(alias="lineItemId")
    quantity: Optional[Union[int, float]] = None
    details: Optional[str] = None


class DuplicateCheckRequest(BaseModel):
    """Prospective award submitted for duplicate evaluation."""

    model_config = ConfigDict(populate_by_name=True)

    site_id: Optional[str] = Field(default=None, alias="siteId")
    project_ref_id: Optional[str] = Field(default=None, alias="projectRefId")
    line_items: List[LineItemRequest] = Field(default_factory=list, alias="lineItems")

    def to_proposal(self) -> AwardProposal:
        return AwardProposal(
            site_id=self.site_id or "",
            project_ref_id=self.project_ref_id or "",
            line_items=tuple(
                LineItemEntry(
                    line_item_id=item.line_item_id,
                    quantity=item.quantity,
                    details=item.details,
                )
                for item in self.line_items
            ),
        )


# =============================================================================
# API Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Award Duplicate Checker API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "check": "/duplicates/check",
            "sites": "/records/sites",
            "project_references": "/records/project-references",
            "line_items": "/records/line-items",
            "contracts": "/records/contracts",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


async def _encode_events(
    orch: DuplicateCheckOrchestrator,
    proposal: AwardProposal,
    request_id: str,
) -> AsyncIterator[bytes]:
    async for event in orch.evaluate(proposal, request_id=request_id):
        yield _event_encoder.encode(event) + b"\n"


@app.post("/duplicates/check")
async def check_duplicates(
    request: DuplicateCheckRequest,
    orch: DuplicateCheckOrchestrator = Depends(get_orchestrator),
):
    """Check a prospective award for duplicate line items.

    The proposal is validated before the stream opens, so a missing site or
    POR is answered with HTTP 400 and no events.

    Returns:
        Newline-delimited JSON events: status, duplicate-warning and
        duplicate-summary (only when duplicates exist), narrative
    """
    proposal = request.to_proposal()
    orch.validate_proposal(proposal)

    request_id = str(uuid.uuid4())
    logger.info(
        f"Received duplicate check request {request_id}",
        site_id=proposal.site_id,
        project_ref_id=proposal.project_ref_id,
        line_item_count=len(proposal.line_items),
    )

    return StreamingResponse(
        _encode_events(orch, proposal, request_id),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"X-Request-ID": request_id},
    )


@app.get("/records/sites")
async def list_sites(orch: DuplicateCheckOrchestrator = Depends(get_orchestrator)):
    """List all sites."""
    return JSONResponse(content=msgspec.to_builtins(orch.store.list_sites()))


@app.get("/records/project-references")
async def list_project_references(orch: DuplicateCheckOrchestrator = Depends(get_orchestrator)):
    """List all PORs (project references)."""
    return JSONResponse(content=msgspec.to_builtins(orch.store.list_project_references()))


@app.get("/records/line-items")
async def list_line_items(orch: DuplicateCheckOrchestrator = Depends(get_orchestrator)):
    """List all line-item definitions."""
    return JSONResponse(content=msgspec.to_builtins(orch.store.list_line_items()))


@app.get("/records/contracts")
async def list_contracts(orch: DuplicateCheckOrchestrator = Depends(get_orchestrator)):
    """List all contracts, whatever their status."""
    return JSONResponse(content=msgspec.to_builtins(orch.store.list_contracts()))


@app.get("/records/contracts/{contract_id}")
async def get_contract(
    contract_id: str,
    orch: DuplicateCheckOrchestrator = Depends(get_orchestrator),
):
    """Get a single contract by identifier."""
    contract = orch.store.get_contract(contract_id)
    if contract is None:
        raise HTTPException(status_code=404, detail=f"Contract not found: {contract_id}")
    return JSONResponse(content=msgspec.to_builtins(contract))


# =============================================================================
# Application Lifecycle Events
# =============================================================================


@app.on_event("startup")
async def startup_event():
    """Validate settings and initialize services on startup."""
    logger.info("Starting Award Duplicate Checker API")

    report = validate_environment_security(settings)

    for warning in report.warnings:
        logger.warning(f"Security warning: {warning}")

    if not report.valid:
        for error in report.errors:
            logger.error(f"Security validation error: {error}")
        raise ConfigurationError(
            "Security validation failed. Check environment configuration:\n"
            + "\n".join(f"  - {error}" for error in report.errors)
        )

    get_orchestrator()
    logger.info("API startup complete", tls_enabled=settings.tls_enabled)


if __name__ == "__main__":
    import uvicorn

    tls_config = get_tls_config(settings) or {}
    scheme = "HTTPS" if tls_config else "HTTP"
    logger.info(f"Starting {scheme} server on {settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
        ssl_certfile=tls_config.get("certfile"),
        ssl_keyfile=tls_config.get("keyfile"),
    )
