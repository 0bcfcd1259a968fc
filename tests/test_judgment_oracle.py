"""Tests for the Gemini oracle and the semantic duplicate assessor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dupcheck.agents.judgment_oracle import (
    NO_COMPARABLE_DETAILS,
    GeminiJudgmentOracle,
    SemanticDuplicateAssessor,
    first_comparable_entry,
)
from dupcheck.error_handling import OracleError, RetryConfig
from dupcheck.models import LineItemEntry, OracleVerdict

from conftest import FakeOracle, make_contract

EXISTING = "Install fiber optic cable from main hub to building basement"
PARAPHRASE = "Install fiber optic cable infrastructure to connect building to main network"
UNRELATED = "Paint the lobby walls and replace ceiling tiles"


def fiber_contracts():
    return (
        make_contract("c1", LineItemEntry(line_item_id="fiber-cable", details=EXISTING)),
        make_contract("c2", LineItemEntry(line_item_id="fiber-cable", details=UNRELATED)),
    )


def gemini_client(*responses):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(side_effect=list(responses))
    return client


def text_response(text):
    response = MagicMock()
    response.text = text
    return response


class TestFirstComparableEntry:
    def test_skips_entries_without_details(self):
        contracts = (
            make_contract("c0", LineItemEntry(line_item_id="fiber-cable", details="   ")),
            *fiber_contracts(),
        )
        contract, details = first_comparable_entry("fiber-cable", contracts)
        assert contract.id == "c1"
        assert details == EXISTING

    def test_none_when_nothing_comparable(self):
        contracts = (make_contract("c0", LineItemEntry(line_item_id="fiber-cable")),)
        assert first_comparable_entry("fiber-cable", contracts) is None


class TestSemanticDuplicateAssessor:
    def test_oracle_duplicate_verdict(self):
        oracle = FakeOracle(OracleVerdict(similarity_score=0.85, is_duplicate=True, reasoning="same run"))
        assessment = asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=PARAPHRASE),
                fiber_contracts(),
                context="Site: Site A",
            )
        )
        assert assessment.is_duplicate
        assert assessment.similarity_score == 0.85
        assert assessment.reasoning == "same run"
        assert assessment.matching_contract_id == "c1"
        assert not assessment.used_fallback
        assert oracle.calls == [(PARAPHRASE, EXISTING, "Site: Site A")]

    def test_high_score_overrides_negative_flag(self):
        oracle = FakeOracle(OracleVerdict(similarity_score=0.9, is_duplicate=False, reasoning="close"))
        assessment = asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=PARAPHRASE), fiber_contracts()
            )
        )
        assert assessment.is_duplicate

    def test_flag_counts_even_with_low_score(self):
        oracle = FakeOracle(OracleVerdict(similarity_score=0.2, is_duplicate=True, reasoning="same"))
        assessment = asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=PARAPHRASE), fiber_contracts()
            )
        )
        assert assessment.is_duplicate

    def test_score_at_threshold_is_not_duplicate(self):
        oracle = FakeOracle(OracleVerdict(similarity_score=0.7, is_duplicate=False, reasoning="maybe"))
        assessment = asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=PARAPHRASE), fiber_contracts()
            )
        )
        assert not assessment.is_duplicate
        assert assessment.matching_contract_id == "c1"

    def test_only_first_candidate_is_compared(self):
        oracle = FakeOracle(OracleVerdict(similarity_score=0.1, is_duplicate=False, reasoning="different"))
        asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=UNRELATED), fiber_contracts()
            )
        )
        assert len(oracle.calls) == 1
        assert oracle.calls[0][1] == EXISTING

    @pytest.mark.parametrize("details", [None, "", "   "])
    def test_blank_details_short_circuit(self, details):
        oracle = FakeOracle(OracleVerdict(similarity_score=1.0, is_duplicate=True, reasoning="x"))
        assessment = asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=details), fiber_contracts()
            )
        )
        assert not assessment.is_duplicate
        assert assessment.reasoning == NO_COMPARABLE_DETAILS
        assert oracle.calls == []

    @pytest.mark.parametrize(
        "error",
        [RuntimeError("provider down"), asyncio.TimeoutError(), OracleError("malformed")],
    )
    def test_oracle_failure_uses_keyword_fallback(self, error):
        oracle = FakeOracle(error=error)
        assessment = asyncio.run(
            SemanticDuplicateAssessor(oracle).assess(
                LineItemEntry(line_item_id="fiber-cable", details=PARAPHRASE), fiber_contracts()
            )
        )
        assert assessment.used_fallback
        assert assessment.is_duplicate
        assert assessment.matching_contract_id == "c1"
        assert assessment.reasoning.startswith("Keyword-based similarity: 6/9")

    def test_fallback_without_oracle(self):
        assessment = asyncio.run(
            SemanticDuplicateAssessor().assess(
                LineItemEntry(line_item_id="fiber-cable", details=UNRELATED),
                fiber_contracts()[:1],
            )
        )
        assert assessment.used_fallback
        assert not assessment.is_duplicate
        assert assessment.similarity_score == 0.0

    def test_cancellation_propagates(self):
        oracle = FakeOracle(error=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(
                SemanticDuplicateAssessor(oracle).assess(
                    LineItemEntry(line_item_id="fiber-cable", details=PARAPHRASE), fiber_contracts()
                )
            )


class TestGeminiJudgmentOracle:
    def test_requires_key_or_client(self):
        with pytest.raises(OracleError):
            GeminiJudgmentOracle(api_key="")

    def test_parses_structured_verdict(self):
        client = gemini_client(
            text_response('{"similarity_score": 0.85, "is_duplicate": true, "reasoning": "same"}')
        )
        oracle = GeminiJudgmentOracle(api_key="", client=client)
        verdict = asyncio.run(oracle.judge(PARAPHRASE, EXISTING, context="Site: Site A"))

        assert verdict == OracleVerdict(similarity_score=0.85, is_duplicate=True, reasoning="same")
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["config"].response_mime_type == "application/json"
        assert PARAPHRASE in kwargs["contents"][0].parts[0].text

    def test_strips_code_fences(self):
        client = gemini_client(
            text_response('```json\n{"similarity_score": 0.3, "is_duplicate": false, "reasoning": "no"}\n```')
        )
        verdict = asyncio.run(GeminiJudgmentOracle(api_key="", client=client).judge("a", "b"))
        assert verdict.similarity_score == 0.3

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            '{"similarity_score": 1.5, "is_duplicate": true, "reasoning": "x"}',
            '{"is_duplicate": true}',
        ],
    )
    def test_unusable_response_raises(self, text):
        oracle = GeminiJudgmentOracle(api_key="", client=gemini_client(text_response(text)))
        with pytest.raises(OracleError):
            asyncio.run(oracle.judge("a", "b"))

    def test_empty_response_raises(self):
        oracle = GeminiJudgmentOracle(api_key="", client=gemini_client(text_response("")))
        with pytest.raises(OracleError, match="empty"):
            asyncio.run(oracle.judge("a", "b"))

    def test_provider_error_wrapped(self):
        oracle = GeminiJudgmentOracle(api_key="", client=gemini_client(RuntimeError("quota")))
        with pytest.raises(OracleError, match="quota"):
            asyncio.run(oracle.judge("a", "b"))

    def test_timeout_raises_oracle_error(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        client = MagicMock()
        client.aio.models.generate_content = slow
        oracle = GeminiJudgmentOracle(api_key="", client=client, timeout_seconds=0.01)
        with pytest.raises(OracleError, match="timed out"):
            asyncio.run(oracle.judge("a", "b"))

    def test_retries_when_configured(self):
        client = gemini_client(
            RuntimeError("flaky"),
            text_response('{"similarity_score": 0.9, "is_duplicate": true, "reasoning": "ok"}'),
        )
        oracle = GeminiJudgmentOracle(
            api_key="", client=client, retry_config=RetryConfig(attempts=2, initial_delay=0.0)
        )
        verdict = asyncio.run(oracle.judge("a", "b"))
        assert verdict.is_duplicate
        assert client.aio.models.generate_content.await_count == 2

    def test_single_attempt_by_default(self):
        client = gemini_client(RuntimeError("flaky"), text_response("{}"))
        oracle = GeminiJudgmentOracle(api_key="", client=client)
        with pytest.raises(OracleError):
            asyncio.run(oracle.judge("a", "b"))
        assert client.aio.models.generate_content.await_count == 1
