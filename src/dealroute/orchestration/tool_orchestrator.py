"""Tool delegation orchestrator.

Runs the narrow tool operations a message implicates before the handler's
free-text generation, and injects their results into the prompt as a
delimited data-context block. Per-category failures are recorded and
skipped; a generation failure falls back to a direct call, and a second
failure is reported as one friendly sentence.

Only the dedicated tool-handler role gets the function-calling manifest.
Every other handler receives tool results already resolved.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel

from dealroute.core.config import DispatcherConfig
from dealroute.core.errors import ToolError, ToolNotFoundError, ToolValidationError
from dealroute.models.enums import ToolCategory
from dealroute.models.routing import ToolRequirements, ToolRunResult
from dealroute.orchestration.classifier import classify
from dealroute.orchestration.threads import ThreadRegistry
from dealroute.providers.ai.base import (
    AIToolCall,
    AIToolResult,
    GenerationBackend,
    GenerationBackendError,
    GenerationRequest,
    GenerationResponse,
)
from dealroute.telemetry.base import Attr, SpanKind, TelemetryProvider
from dealroute.telemetry.config import TelemetryConfig, resolve_telemetry
from dealroute.tools.catalog import aftermarket_options
from dealroute.tools.definitions import ToolExecutor
from dealroute.tools.operations import DealTools

logger = logging.getLogger("dealroute.orchestration.tool_orchestrator")

_DEAL_NUMBER = re.compile(r"deal\s*(?:number\s*)?#?\s*(\d+)", re.IGNORECASE)
# Dollar amounts ("$3000", "$ 3000", "$3,000") are never code entries.
_CODE = re.compile(r"(?<![\$\d,.])(?<!\$\s)\b(\d{4})\b(?![,.]\d)")
_CODE_WORDS = re.compile(r"\b(?:code|verify|verification|sms)\b", re.IGNORECASE)
CODE_ENTRY_STEPS = frozenset({"identity_verification", "sms_verification"})
_AMOUNT = re.compile(r"\$\s*([\d,]+(?:\.\d+)?)")
_RATE = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_TERM = re.compile(r"(\d+)\s*(?:months?|mos?)\b", re.IGNORECASE)

NOT_FOUND = "not found"
VERIFICATION_LOCKED = "verification locked"


def extract_deal_number(message: str, context: Mapping[str, Any] | None = None) -> str | None:
    """Deal number mentioned in the message, else one remembered in *context*."""
    match = _DEAL_NUMBER.search(message)
    if match:
        return match.group(1)
    if context:
        remembered = context.get("deal_number")
        if remembered is not None:
            return str(remembered)
    return None


def expects_code(message: str, current_step: str | None = None) -> bool:
    """Whether a four-digit number in *message* should count as a code entry."""
    return current_step in CODE_ENTRY_STEPS or _CODE_WORDS.search(message) is not None


def build_augmented_prompt(message: str, tool_data: Mapping[str, str], trailer: str) -> str:
    """Append a delimited data-context block to the user's message."""
    block = "\n\n".join(f"{key.upper()}: {value}" for key, value in tool_data.items())
    return f"{message}\n\nAVAILABLE DATA CONTEXT:\n{block}\n\n{trailer}"


class CategoryOutcome(BaseModel):
    """What one tool category produced: data, an error, or both absent."""

    category: ToolCategory
    data: str | None = None
    error: str | None = None
    verified: bool | None = None


def _money(value: float) -> str:
    return f"${value:,.2f}"


CategoryHandler = Callable[[str, str | None], Awaitable[CategoryOutcome]]


class ToolOrchestrator:
    """Execute detected tool categories and ground the handler's reply in their results."""

    def __init__(
        self,
        tools: DealTools,
        backend: GenerationBackend,
        threads: ThreadRegistry,
        *,
        config: DispatcherConfig | None = None,
        telemetry: TelemetryConfig | TelemetryProvider | None = None,
    ) -> None:
        self._tools = tools
        self._backend = backend
        self._threads = threads
        self._config = config or DispatcherConfig()
        self._telemetry = resolve_telemetry(telemetry)
        self._executor = ToolExecutor(tools)

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    async def execute_with_tools(
        self,
        handler: str,
        message: str,
        conversation_id: str,
        tool_requirements: ToolRequirements | None = None,
        *,
        user_id: str | None = None,
        context: Mapping[str, Any] | None = None,
        current_step: str | None = None,
        verification_locked: bool = False,
    ) -> ToolRunResult:
        """Run tools for *message*, then generate *handler*'s reply.

        Args:
            handler: Handler whose thread receives the generation call.
            message: Raw inbound text.
            conversation_id: Conversation the turn belongs to.
            tool_requirements: Classifier output; computed when omitted.
            user_id: Passed to the backend when a thread is created.
            context: Workflow-level data, consulted for a remembered deal number.
            current_step: Workflow step; at a verification step any
                four-digit number is taken as a code entry.
            verification_locked: Reject code entries without checking them.
        """
        requirements = tool_requirements or classify(message)
        try:
            lookup = await self._threads.resolve(conversation_id, handler, user_id)
        except GenerationBackendError:
            logger.exception(
                "Thread allocation failed",
                extra={"conversation_id": conversation_id, "handler": handler},
            )
            return self._failure(handler)

        result = ToolRunResult(
            success=True,
            handler=handler,
            thread_id=lookup.thread_id,
            is_new_thread=lookup.is_new,
        )

        if not requirements.needed:
            return await self._direct(result, lookup.thread_id, message)

        outcomes = await self._run_categories(
            requirements.tool_types,
            message,
            context,
            code_expected=expects_code(message, current_step),
            verification_locked=verification_locked,
        )
        tool_data = {str(o.category): o.data for o in outcomes if o.data is not None}
        tool_errors = [f"{o.category}: {o.error}" for o in outcomes if o.error is not None]
        verification = next((o.verified for o in outcomes if o.verified is not None), None)
        result = result.model_copy(
            update={
                "tools_executed": [o.category for o in outcomes if o.data is not None],
                "tool_data": tool_data,
                "tool_errors": tool_errors,
                "metadata": {
                    "priority": str(requirements.priority),
                    "matched_patterns": list(requirements.matched_patterns),
                    **({"verified": verification} if verification is not None else {}),
                },
            }
        )

        if not tool_data:
            logger.warning(
                "All %d tool categories failed, answering without data context",
                len(outcomes),
                extra={"conversation_id": conversation_id, "handler": handler},
            )
            return await self._direct(result, lookup.thread_id, message)

        prompt = build_augmented_prompt(message, tool_data, self._config.context_trailer)
        try:
            response = await self._generate(handler, lookup.thread_id, prompt, augmented=True)
        except GenerationBackendError as exc:
            logger.warning(
                "Augmented generation failed, retrying without data context: %s",
                exc,
                extra={"conversation_id": conversation_id, "handler": handler},
            )
            return await self._direct(result, lookup.thread_id, message)
        return result.model_copy(update={"response": response.text})

    # -- Generation -----------------------------------------------------------

    async def _direct(
        self, result: ToolRunResult, thread_id: str, message: str
    ) -> ToolRunResult:
        try:
            response = await self._generate(result.handler, thread_id, message)
        except GenerationBackendError:
            logger.exception(
                "Generation failed",
                extra={"handler": result.handler, "thread_id": thread_id},
            )
            return result.model_copy(
                update={"success": False, "response": "", "error": self._config.fallback_message}
            )
        return result.model_copy(update={"response": response.text})

    def _failure(self, handler: str) -> ToolRunResult:
        return ToolRunResult(success=False, handler=handler, error=self._config.fallback_message)

    async def _call(self, request: GenerationRequest) -> GenerationResponse:
        t0 = time.monotonic()
        try:
            async with asyncio.timeout(self._config.generation_timeout):
                response = await self._backend.generate(request)
        except TimeoutError as exc:
            raise GenerationBackendError(
                f"Generation timed out after {self._config.generation_timeout}s",
                retryable=True,
                provider=self._backend.name,
            ) from exc
        self._telemetry.record_metric(
            "dealroute.llm.latency_ms",
            (time.monotonic() - t0) * 1000,
            unit="ms",
            attributes={
                Attr.PROVIDER: self._backend.name,
                Attr.MODEL: self._backend.model_name,
            },
        )
        return response

    async def _generate(
        self,
        handler: str,
        thread_id: str,
        prompt: str,
        *,
        augmented: bool = False,
    ) -> GenerationResponse:
        tools = self._executor.definitions if handler == self._config.tool_handler else []
        request = GenerationRequest(
            thread_id=thread_id,
            prompt=prompt,
            tools=tools,
            metadata={"handler": handler},
        )
        with self._telemetry.span(
            SpanKind.LLM_GENERATE,
            "llm.generate",
            attributes={
                Attr.HANDLER: handler,
                Attr.LLM_THREAD_ID: thread_id,
                Attr.LLM_AUGMENTED: augmented,
                Attr.PROVIDER: self._backend.name,
            },
        ) as span_id:
            response = await self._call(request)
            for _round in range(self._config.max_tool_rounds):
                if not response.tool_calls or not tools:
                    break
                logger.info(
                    "Tool round %d: %d call(s)",
                    _round + 1,
                    len(response.tool_calls),
                    extra={"handler": handler, "thread_id": thread_id},
                )
                results = await asyncio.gather(
                    *(self._run_tool_call(tc) for tc in response.tool_calls)
                )
                request = request.model_copy(update={"prompt": "", "tool_results": list(results)})
                response = await self._call(request)
            else:
                if response.tool_calls and tools:
                    logger.warning(
                        "Tool loop reached max_tool_rounds=%d", self._config.max_tool_rounds
                    )
            if response.usage:
                self._telemetry.set_attribute(
                    span_id, Attr.LLM_INPUT_TOKENS, response.usage.get("prompt_tokens", 0)
                )
                self._telemetry.set_attribute(
                    span_id, Attr.LLM_OUTPUT_TOKENS, response.usage.get("completion_tokens", 0)
                )
        return response

    async def _run_tool_call(self, call: AIToolCall) -> AIToolResult:
        with self._telemetry.span(
            SpanKind.TOOL_CALL, f"tool.{call.name}", attributes={"tool.name": call.name}
        ):
            result = await self._executor(call.name, call.arguments)
        return AIToolResult(tool_call_id=call.id, name=call.name, result=result)

    # -- Tool categories ------------------------------------------------------

    async def _run_categories(
        self,
        categories: list[ToolCategory],
        message: str,
        context: Mapping[str, Any] | None,
        *,
        code_expected: bool = False,
        verification_locked: bool = False,
    ) -> list[CategoryOutcome]:
        deal_number = extract_deal_number(message, context)
        handlers = self._category_handlers(code_expected, verification_locked)
        pending = asyncio.gather(
            *(
                self._run_category(category, handlers[category], message, deal_number)
                for category in categories
            )
        )
        # A cancelled turn lets in-flight tool calls finish; their results are dropped.
        outcomes = await asyncio.shield(pending)
        # gather preserves argument order, so results merge in category order.
        return list(outcomes)

    async def _run_category(
        self,
        category: ToolCategory,
        handler: CategoryHandler,
        message: str,
        deal_number: str | None,
    ) -> CategoryOutcome:
        with self._telemetry.span(
            SpanKind.TOOL_CALL,
            f"tool.{category}",
            attributes={Attr.TOOL_CATEGORY: str(category)},
        ) as span_id:
            try:
                outcome = await handler(message, deal_number)
            except ToolNotFoundError as exc:
                logger.warning("Tool category %s: %s", category, exc)
                outcome = CategoryOutcome(category=category, error=NOT_FOUND)
            except ToolError as exc:
                logger.warning("Tool category %s rejected: %s", category, exc)
                outcome = CategoryOutcome(category=category, error=str(exc))
            except Exception as exc:
                logger.warning(
                    "Tool category %s raised %s: %s", category, type(exc).__name__, exc
                )
                outcome = CategoryOutcome(category=category, error=f"{type(exc).__name__}")
            if outcome.error is not None:
                self._telemetry.set_attribute(span_id, Attr.TOOL_ERROR_COUNT, 1)
        return outcome

    def _category_handlers(
        self, code_expected: bool, verification_locked: bool
    ) -> dict[ToolCategory, CategoryHandler]:
        return {
            ToolCategory.DEAL_RETRIEVAL: self._deal_retrieval,
            ToolCategory.FINANCIAL_CALCULATIONS: self._financial_calculations,
            ToolCategory.DOCUMENT_GENERATION: self._document_generation,
            ToolCategory.VERIFICATION: functools.partial(
                self._verification,
                code_expected=code_expected,
                locked=verification_locked,
            ),
            ToolCategory.AFTERMARKET: self._aftermarket,
            ToolCategory.BANK_PROGRAMS: self._bank_programs,
            ToolCategory.DATA_UPDATE: self._data_update,
        }

    @staticmethod
    def _need_deal(deal_number: str | None) -> str:
        if deal_number is None:
            raise ToolValidationError("a deal number is required")
        return deal_number

    async def _deal_retrieval(self, message: str, deal_number: str | None) -> CategoryOutcome:
        deal = await self._tools.get_deal(self._need_deal(deal_number))
        return CategoryOutcome(
            category=ToolCategory.DEAL_RETRIEVAL, data=json.dumps(deal.summary())
        )

    async def _financial_calculations(
        self, message: str, deal_number: str | None
    ) -> CategoryOutcome:
        term = self._config.default_term_months
        term_match = _TERM.search(message)
        if term_match:
            term = int(term_match.group(1))

        amount = _AMOUNT.search(message)
        if amount is not None:
            principal = float(amount.group(1).replace(",", ""))
            rate_match = _RATE.search(message)
            rate = float(rate_match.group(1)) if rate_match else self._config.default_annual_rate
            quote = self._tools.calculate_payment(principal, rate, term)
            data = (
                f"Estimated payment {_money(quote.monthly_payment)}/month on "
                f"{_money(principal)} for {term} months at {rate}%."
            )
            return CategoryOutcome(category=ToolCategory.FINANCIAL_CALCULATIONS, data=data)

        if deal_number is None:
            raise ToolValidationError("a deal number or loan amount is required")
        deal = await self._tools.get_deal(deal_number)
        extra = 0.0
        if deal.selected_add_on:
            extra = next(
                (
                    float(o.cost)
                    for o in aftermarket_options(deal.sale_price)
                    if o.key == deal.selected_add_on
                ),
                0.0,
            )
        financed = await self._tools.calculate_total_financed(deal_number, extra)
        if deal.credit_score is not None:
            credit = self._tools.rate_for_credit_score(deal.credit_score)
            rate, tier = credit.interest_rate, f" ({credit.tier} tier)"
        else:
            rate, tier = self._config.default_annual_rate, ""
        quote = self._tools.calculate_payment(financed.total_financed, rate, term)
        data = (
            f"Deal {deal_number}: taxable amount {_money(financed.taxable_amount)}, "
            f"tax {_money(financed.tax)}, trade equity {_money(financed.trade_equity)}, "
            f"total financed {_money(financed.total_financed)}. "
            f"Estimated payment {_money(quote.monthly_payment)}/month for "
            f"{term} months at {rate}%{tier}."
        )
        return CategoryOutcome(category=ToolCategory.FINANCIAL_CALCULATIONS, data=data)

    async def _document_generation(
        self, message: str, deal_number: str | None
    ) -> CategoryOutcome:
        package = await self._tools.generate_documents(self._need_deal(deal_number))
        return CategoryOutcome(
            category=ToolCategory.DOCUMENT_GENERATION, data=package.model_dump_json()
        )

    async def _verification(
        self,
        message: str,
        deal_number: str | None,
        *,
        code_expected: bool = False,
        locked: bool = False,
    ) -> CategoryOutcome:
        if locked:
            return CategoryOutcome(category=ToolCategory.VERIFICATION, error=VERIFICATION_LOCKED)
        if code_expected:
            code = next(
                (m.group(1) for m in _CODE.finditer(message) if m.group(1) != deal_number), None
            )
            if code is not None:
                check = self._tools.verify_code(code)
                return CategoryOutcome(
                    category=ToolCategory.VERIFICATION, data=check.message, verified=check.verified
                )
            if deal_number is not None:
                dispatch = await self._tools.send_verification_code(deal_number)
                return CategoryOutcome(category=ToolCategory.VERIFICATION, data=dispatch.message)
        return CategoryOutcome(
            category=ToolCategory.VERIFICATION,
            data="Verification system ready. Please provide deal number for verification.",
        )

    async def _aftermarket(self, message: str, deal_number: str | None) -> CategoryOutcome:
        quote = await self._tools.get_aftermarket_options(deal_number)
        return CategoryOutcome(category=ToolCategory.AFTERMARKET, data=quote.model_dump_json())

    async def _bank_programs(self, message: str, deal_number: str | None) -> CategoryOutcome:
        programs = [p.model_dump() for p in self._tools.list_financing_programs()]
        payload: dict[str, Any] = {"programs": programs}
        if deal_number is not None:
            deal = await self._tools.get_deal(deal_number)
            if deal.credit_score is not None:
                payload["credit_rate"] = self._tools.rate_for_credit_score(
                    deal.credit_score
                ).model_dump()
        return CategoryOutcome(category=ToolCategory.BANK_PROGRAMS, data=json.dumps(payload))

    async def _data_update(self, message: str, deal_number: str | None) -> CategoryOutcome:
        target = f" for deal {deal_number}" if deal_number else ""
        return CategoryOutcome(
            category=ToolCategory.DATA_UPDATE,
            data=(
                f"Data update system ready{target}. "
                "Please specify what information needs to be updated."
            ),
        )
