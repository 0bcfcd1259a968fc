"""
Judgment Oracle - semantic duplicate detection for variable-cost line items.

Two free-text work descriptions are compared by a Gemini model that answers
with a structured verdict (similarity score, duplicate flag, reasoning).
The assessor wraps the oracle call:
1. Picks the first prior entry with comparable details as the reference
2. Asks the oracle, treating `is_duplicate` OR a high score as a duplicate
3. Falls back to keyword overlap when the oracle fails for any reason
"""

import asyncio
from typing import Optional, Protocol, Sequence

import msgspec
from google import genai
from google.genai import types
from loguru import logger

from dupcheck.error_handling import (
    ORACLE_RETRY_CONFIG,
    OracleError,
    RetryConfig,
    retry_with_backoff,
)
from dupcheck.logging_config import get_request_logger, log_component_execution
from dupcheck.models import (
    ContractRecord,
    LineItemEntry,
    OracleVerdict,
    SemanticAssessment,
)
from tools.keyword_similarity import is_keyword_duplicate, keyword_similarity


NO_COMPARABLE_DETAILS = "no comparable details"


class JudgmentOracle(Protocol):
    """Anything that can judge whether two work descriptions are the same work."""

    async def judge(
        self,
        new_details: str,
        existing_details: str,
        context: Optional[str] = None
    ) -> OracleVerdict:
        ...


class GeminiJudgmentOracle:
    """Judgment Oracle backed by a Gemini structured-output call."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.0-flash",
        timeout_seconds: float = 5.0,
        retry_config: RetryConfig = ORACLE_RETRY_CONFIG,
        temperature: float = 0.1,
        client: Optional[genai.Client] = None
    ):
        """Initialize the Gemini oracle.

        Args:
            api_key: Google API key for Gemini
            model_name: Gemini model used for the comparison
            timeout_seconds: Upper bound for a single oracle attempt
            retry_config: Retry policy applied around each judgment
            temperature: Sampling temperature
            client: Pre-built genai client (tests inject a mock here)
        """
        if not api_key and client is None:
            raise OracleError("No API key provided for the Judgment Oracle")

        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config
        self.temperature = temperature
        self.client = client or genai.Client(api_key=api_key)
        self.instruction = self._build_instruction()
        self._generate = retry_with_backoff(self.retry_config, exceptions=(OracleError,))(
            self._generate_once
        )

        logger.info(
            "Gemini Judgment Oracle initialized",
            model=model_name,
            timeout_seconds=timeout_seconds,
            attempts=retry_config.attempts
        )

    def _build_instruction(self) -> str:
        """System prompt for duplicate judgment."""
        return """You are a duplicate detection system for contract line items.

Your task is to determine if two variable-cost line items represent the same work activity,
even if they have different wording in their free-text details field.

Consider:
- Semantic similarity of the work described
- Location/site context
- Technical specifications

Respond with ONLY a JSON object with these keys:
- similarity_score: number between 0 and 1
- is_duplicate: boolean (true if similarity_score > 0.7)
- reasoning: short explanation of the decision"""

    def _build_prompt(self, new_details: str, existing_details: str, context: Optional[str]) -> str:
        context_block = f"\nCONTEXT:\n{context}\n" if context else ""
        return f"""Compare these variable-cost line items:
{context_block}
NEW LINE ITEM:
Details: "{new_details}"

EXISTING LINE ITEM:
Details: "{existing_details}"

Are these duplicates? Consider semantic meaning, not just exact text matches."""

    async def judge(
        self,
        new_details: str,
        existing_details: str,
        context: Optional[str] = None
    ) -> OracleVerdict:
        """Ask Gemini whether two descriptions are the same work.

        Raises:
            OracleError: On timeout, provider failure or an unusable response
        """
        prompt = self._build_prompt(new_details, existing_details, context)
        response_text = await self._generate(prompt)
        return self._parse_verdict(response_text)

    async def _generate_once(self, prompt: str) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=[
                        types.Content(role="user", parts=[types.Part(text=prompt)])
                    ],
                    config=types.GenerateContentConfig(
                        system_instruction=self.instruction,
                        temperature=self.temperature,
                        max_output_tokens=400,
                        response_mime_type="application/json"
                    )
                ),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise OracleError(f"Judgment Oracle timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            raise OracleError(f"Judgment Oracle call failed: {str(e)}") from e

        if not response or not response.text:
            raise OracleError("Judgment Oracle returned an empty response")
        return response.text

    def _parse_verdict(self, response_text: str) -> OracleVerdict:
        """Decode and validate the oracle's JSON answer with msgspec."""
        cleaned_text = response_text.strip()
        if cleaned_text.startswith("```json"):
            cleaned_text = cleaned_text[7:]
        if cleaned_text.startswith("```"):
            cleaned_text = cleaned_text[3:]
        if cleaned_text.endswith("```"):
            cleaned_text = cleaned_text[:-3]
        cleaned_text = cleaned_text.strip()

        try:
            return msgspec.json.decode(cleaned_text.encode("utf-8"), type=OracleVerdict)
        except msgspec.DecodeError as e:
            raise OracleError(f"Malformed Judgment Oracle response: {str(e)}") from e


def first_comparable_entry(
    line_item_id: str,
    contracts: Sequence[ContractRecord]
) -> Optional[tuple[ContractRecord, str]]:
    """First (contract, details) pair for the line item with non-empty details."""
    for contract in contracts:
        for entry in contract.line_items:
            if entry.line_item_id == line_item_id and entry.details and entry.details.strip():
                return contract, entry.details
    return None


class SemanticDuplicateAssessor:
    """
    Decides whether a variable-cost entry duplicates prior awarded work.

    Pipeline: Entry -> Reference selection -> Oracle (or keyword fallback) -> SemanticAssessment
    """

    def __init__(
        self,
        oracle: Optional[JudgmentOracle] = None,
        duplicate_threshold: float = 0.7,
        keyword_threshold: float = 0.5
    ):
        """Initialize the assessor.

        Args:
            oracle: Judgment Oracle; when None every comparison uses the keyword fallback
            duplicate_threshold: Oracle score above which a pair counts as duplicate
            keyword_threshold: Keyword overlap above which the fallback reports a duplicate
        """
        self.oracle = oracle
        self.duplicate_threshold = duplicate_threshold
        self.keyword_threshold = keyword_threshold

    @log_component_execution("SemanticDuplicateAssessor")
    async def assess(
        self,
        entry: LineItemEntry,
        contracts: Sequence[ContractRecord],
        context: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> SemanticAssessment:
        """Compare a proposed entry with the first comparable prior entry.

        Never raises for oracle problems; cancellation still propagates.

        Args:
            entry: Proposed variable-cost entry
            contracts: Awarded contracts containing the same line item
            context: Optional extra context forwarded to the oracle
            request_id: Evaluation request identifier for logging

        Returns:
            SemanticAssessment naming the compared contract when one was found
        """
        request_logger = get_request_logger(request_id or "unknown", "SemanticDuplicateAssessor")

        new_details = (entry.details or "").strip()
        reference = first_comparable_entry(entry.line_item_id, contracts)
        if not new_details or reference is None:
            request_logger.debug(
                f"No comparable details for {entry.line_item_id}",
                has_new_details=bool(new_details)
            )
            return SemanticAssessment(
                is_duplicate=False,
                similarity_score=0.0,
                reasoning=NO_COMPARABLE_DETAILS
            )

        contract, existing_details = reference

        if self.oracle is None:
            request_logger.debug("No Judgment Oracle configured, using keyword fallback")
            return self._fallback(new_details, existing_details, contract)

        try:
            verdict = await self.oracle.judge(new_details, existing_details, context=context)
        except Exception as e:
            request_logger.warning(
                f"Judgment Oracle failed for {entry.line_item_id}, using keyword fallback",
                error=str(e),
                error_type=type(e).__name__
            )
            return self._fallback(new_details, existing_details, contract)

        is_duplicate = verdict.is_duplicate or verdict.similarity_score > self.duplicate_threshold
        request_logger.info(
            f"Oracle verdict for {entry.line_item_id}",
            contract_id=contract.id,
            similarity_score=verdict.similarity_score,
            is_duplicate=is_duplicate
        )
        return SemanticAssessment(
            is_duplicate=is_duplicate,
            similarity_score=verdict.similarity_score,
            reasoning=verdict.reasoning,
            matching_contract_id=contract.id
        )

    def _fallback(
        self,
        new_details: str,
        existing_details: str,
        contract: ContractRecord
    ) -> SemanticAssessment:
        similarity = keyword_similarity(new_details, existing_details)
        return SemanticAssessment(
            is_duplicate=is_keyword_duplicate(similarity, self.keyword_threshold),
            similarity_score=similarity.score,
            reasoning=similarity.describe(),
            matching_contract_id=contract.id,
            used_fallback=True
        )
