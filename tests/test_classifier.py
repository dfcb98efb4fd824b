"""Tests for the pattern classifier."""

from __future__ import annotations

import asyncio

from dealroute.models.enums import ToolCategory, ToolPriority
from dealroute.orchestration.classifier import (
    RULES,
    available_tool_categories,
    classify,
    priority_for,
)


def _rule(category: ToolCategory):
    return next(r for r in RULES if r.category == category)


class TestClassify:
    def test_deal_lookup_is_high_priority(self) -> None:
        result = classify("I need to get deal 207 info")
        assert result.needed is True
        assert ToolCategory.DEAL_RETRIEVAL in result.tool_types
        assert result.priority == ToolPriority.HIGH
        assert "deal_identification" in result.matched_patterns

    def test_no_match(self) -> None:
        result = classify("hello there")
        assert result.needed is False
        assert result.tool_types == []
        assert result.priority == ToolPriority.LOW
        assert result.matched_patterns == []

    def test_financial_is_medium_priority(self) -> None:
        result = classify("What would my monthly payment be?")
        assert result.tool_types == [ToolCategory.FINANCIAL_CALCULATIONS]
        assert result.priority == ToolPriority.MEDIUM

    def test_dollar_amount_implies_calculation(self) -> None:
        result = classify("Can I afford $25,000?")
        assert ToolCategory.FINANCIAL_CALCULATIONS in result.tool_types

    def test_four_digit_code_implies_verification(self) -> None:
        result = classify("it says 1234")
        assert result.tool_types == [ToolCategory.VERIFICATION]
        assert result.priority == ToolPriority.HIGH

    def test_aftermarket_is_low_priority(self) -> None:
        result = classify("Tell me about the extended warranty")
        assert result.tool_types == [ToolCategory.AFTERMARKET]
        assert result.priority == ToolPriority.LOW

    def test_deal_by_customer_name(self) -> None:
        result = classify("pull up customer Jane Doe")
        assert ToolCategory.DEAL_RETRIEVAL in result.tool_types

    def test_deal_number_word(self) -> None:
        result = classify("look at deal number three")
        assert ToolCategory.DEAL_RETRIEVAL in result.tool_types

    def test_categories_in_canonical_order(self) -> None:
        result = classify("generate documents and calculate payment for deal 3")
        assert result.tool_types == [
            ToolCategory.DEAL_RETRIEVAL,
            ToolCategory.FINANCIAL_CALCULATIONS,
            ToolCategory.DOCUMENT_GENERATION,
        ]
        assert result.matched_patterns == [
            "deal_identification",
            "payment_calculation",
            "document_request",
        ]

    def test_case_insensitive(self) -> None:
        assert classify("SHOW ME THE PAPERWORK").tool_types == [
            ToolCategory.DOCUMENT_GENERATION
        ]

    def test_context_does_not_change_result(self) -> None:
        message = "update the address"
        assert classify(message, {"deal_number": "1"}) == classify(message)

    async def test_concurrent_calls_are_independent(self) -> None:
        messages = ["get deal 1", "hello", "monthly payment", "warranty"] * 5
        results = await asyncio.gather(
            *(asyncio.to_thread(classify, message) for message in messages)
        )
        assert [r.needed for r in results] == [True, False, True, True] * 5


class TestRules:
    def test_one_rule_per_category(self) -> None:
        assert [r.category for r in RULES] == list(ToolCategory)

    def test_rules_match_in_isolation(self) -> None:
        assert _rule(ToolCategory.BANK_PROGRAMS).matches("which lender do you use")
        assert not _rule(ToolCategory.BANK_PROGRAMS).matches("which car is red")
        assert _rule(ToolCategory.DATA_UPDATE).matches("please correct my name")
        assert _rule(ToolCategory.DEAL_RETRIEVAL).matches("Deal #42")

    def test_regex_rules_see_original_case(self) -> None:
        assert _rule(ToolCategory.DEAL_RETRIEVAL).matches("DEAL NUMBER 5")


class TestPriority:
    def test_verification_outranks_financial(self) -> None:
        assert (
            priority_for([ToolCategory.FINANCIAL_CALCULATIONS, ToolCategory.VERIFICATION])
            == ToolPriority.HIGH
        )

    def test_data_update_is_medium(self) -> None:
        assert priority_for([ToolCategory.DATA_UPDATE]) == ToolPriority.MEDIUM

    def test_others_are_low(self) -> None:
        assert (
            priority_for([ToolCategory.BANK_PROGRAMS, ToolCategory.DOCUMENT_GENERATION])
            == ToolPriority.LOW
        )
        assert priority_for([]) == ToolPriority.LOW


def test_available_tool_categories() -> None:
    categories = available_tool_categories()
    assert len(categories) == 7
    assert categories[0] == ToolCategory.DEAL_RETRIEVAL
    assert categories[-1] == ToolCategory.DATA_UPDATE
