"""Pattern classifier: which tool categories does a message implicate?

Each category is an independent rule over the raw message text. Rules are
evaluated in ``ToolCategory`` declaration order and never consult each
other, so the result is deterministic and the function is safe to call
concurrently.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dealroute.models.enums import ToolCategory, ToolPriority
from dealroute.models.routing import ToolRequirements


class ClassifierRule(BaseModel):
    """Substring and regex tests for one tool category.

    The rule matches if any lowercase keyword is a substring of the
    lowercased message or any pattern searches successfully.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    category: ToolCategory
    pattern_name: str
    keywords: tuple[str, ...] = ()
    patterns: tuple[re.Pattern[str], ...] = Field(default=())

    def matches(self, message: str) -> bool:
        text = message.lower()
        if any(keyword in text for keyword in self.keywords):
            return True
        return any(pattern.search(message) for pattern in self.patterns)


_NUMBER_WORDS = "one|two|three|four|five|six|seven|eight|nine|ten"

RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(
        category=ToolCategory.DEAL_RETRIEVAL,
        pattern_name="deal_identification",
        keywords=("get deal", "deal info", "deal details"),
        patterns=(
            re.compile(rf"deal\s*(?:number|#)?\s*(\d+|{_NUMBER_WORDS})", re.IGNORECASE),
            re.compile(
                r"(?:customer|client)\s+(?:jane\s+doe|john\s+smith|test\s+te\s+tester)",
                re.IGNORECASE,
            ),
        ),
    ),
    ClassifierRule(
        category=ToolCategory.FINANCIAL_CALCULATIONS,
        pattern_name="payment_calculation",
        keywords=(
            "payment",
            "monthly",
            "calculate",
            "how much",
            "loan amount",
            "finance",
            "interest rate",
            "apr",
        ),
        patterns=(re.compile(r"\$[\d,]+"),),
    ),
    ClassifierRule(
        category=ToolCategory.DOCUMENT_GENERATION,
        pattern_name="document_request",
        keywords=(
            "document",
            "paperwork",
            "dmv",
            "title",
            "contract",
            "forms",
            "generate",
            "create",
        ),
    ),
    ClassifierRule(
        category=ToolCategory.VERIFICATION,
        pattern_name="verification_request",
        keywords=("verify", "code", "sms", "text", "verification"),
        patterns=(re.compile(r"\b\d{4}\b"),),
    ),
    ClassifierRule(
        category=ToolCategory.AFTERMARKET,
        pattern_name="aftermarket_inquiry",
        keywords=("warranty", "protection", "aftermarket", "add-on", "extended", "coverage"),
    ),
    ClassifierRule(
        category=ToolCategory.BANK_PROGRAMS,
        pattern_name="financing_inquiry",
        keywords=("bank", "lender", "financing options", "programs", "credit", "approval"),
    ),
    ClassifierRule(
        category=ToolCategory.DATA_UPDATE,
        pattern_name="modification_request",
        keywords=("update", "change", "modify", "edit", "correct"),
    ),
)

_HIGH = frozenset({ToolCategory.DEAL_RETRIEVAL, ToolCategory.VERIFICATION})
_MEDIUM = frozenset({ToolCategory.FINANCIAL_CALCULATIONS, ToolCategory.DATA_UPDATE})


def priority_for(categories: list[ToolCategory]) -> ToolPriority:
    """Derive the priority tier from the set of matched categories."""
    matched = set(categories)
    if matched & _HIGH:
        return ToolPriority.HIGH
    if matched & _MEDIUM:
        return ToolPriority.MEDIUM
    return ToolPriority.LOW


def classify(
    message: str,
    context: Mapping[str, Any] | None = None,
    *,
    rules: tuple[ClassifierRule, ...] = RULES,
) -> ToolRequirements:
    """Score *message* against every category rule.

    ``context`` is accepted so callers can pass conversation context
    uniformly; the built-in rules look only at the message text.
    """
    tool_types: list[ToolCategory] = []
    matched: list[str] = []
    for rule in rules:
        if rule.category not in tool_types and rule.matches(message):
            tool_types.append(rule.category)
            matched.append(rule.pattern_name)
    return ToolRequirements(
        needed=bool(tool_types),
        tool_types=tool_types,
        priority=priority_for(tool_types),
        matched_patterns=matched,
    )


def available_tool_categories() -> list[ToolCategory]:
    """Every category the classifier can report, in canonical order."""
    return list(ToolCategory)
