"""Function-calling manifest and name dispatch for the tool-handler role.

Only the dedicated tool-handling role hands this manifest to the generation
backend. Every other handler gets tool results pre-resolved into its prompt
by the orchestrator.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel

from dealroute.core.errors import ToolNotFoundError, ToolValidationError
from dealroute.providers.ai.base import AITool
from dealroute.tools.operations import DealTools

logger = logging.getLogger("dealroute.tools.definitions")

_DEAL_NUMBER = {"type": "string", "description": "The deal number, e.g. '207'"}


def _schema(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


TOOL_GET_DEAL = AITool(
    name="get_deal",
    description="Retrieve a deal record by its deal number.",
    parameters=_schema({"deal_number": _DEAL_NUMBER}, ["deal_number"]),
)

TOOL_UPDATE_DEAL = AITool(
    name="update_deal",
    description="Update one or more fields on a deal record.",
    parameters=_schema(
        {
            "deal_number": _DEAL_NUMBER,
            "updates": {"type": "object", "description": "Field names mapped to new values"},
            "modified_by": {"type": "string", "description": "Who made the change"},
        },
        ["deal_number", "updates"],
    ),
)

TOOL_CALCULATE_PAYMENT = AITool(
    name="calculate_payment",
    description="Compute the monthly payment for an amortizing loan.",
    parameters=_schema(
        {
            "principal": {"type": "number", "description": "Amount financed"},
            "annual_rate": {"type": "number", "description": "Annual rate in percent"},
            "term_months": {"type": "integer", "description": "Loan term in months"},
        },
        ["principal", "annual_rate", "term_months"],
    ),
)

TOOL_CALCULATE_TOTAL_FINANCED = AITool(
    name="calculate_total_financed",
    description="Compute tax and total amount financed for a deal.",
    parameters=_schema(
        {
            "deal_number": _DEAL_NUMBER,
            "extra_cost": {"type": "number", "description": "Add-on cost to include"},
        },
        ["deal_number"],
    ),
)

TOOL_LIST_FINANCING_PROGRAMS = AITool(
    name="list_financing_programs",
    description="List the available bank financing programs.",
    parameters=_schema({}, []),
)

TOOL_RATE_FOR_CREDIT_SCORE = AITool(
    name="rate_for_credit_score",
    description="Look up the interest rate tier for a credit score.",
    parameters=_schema({"credit_score": {"type": "integer"}}, ["credit_score"]),
)

TOOL_GET_AFTERMARKET_OPTIONS = AITool(
    name="get_aftermarket_options",
    description="List protection packages, priced for the deal's vehicle when given.",
    parameters=_schema({"deal_number": _DEAL_NUMBER}, []),
)

TOOL_SET_ADD_ON = AITool(
    name="set_add_on",
    description="Record the customer's selected protection package.",
    parameters=_schema(
        {
            "deal_number": _DEAL_NUMBER,
            "option": {"type": "string", "enum": ["option1", "option2", "option3", "none"]},
        },
        ["deal_number", "option"],
    ),
)

TOOL_GENERATE_DOCUMENTS = AITool(
    name="generate_documents",
    description="Produce the required document checklist for a deal.",
    parameters=_schema(
        {
            "deal_number": _DEAL_NUMBER,
            "is_finance": {"type": "boolean"},
            "add_on": {"type": "string"},
        },
        ["deal_number"],
    ),
)

TOOL_APPLY_SIGNATURE = AITool(
    name="apply_signature",
    description="Record the customer's signature on a set of documents.",
    parameters=_schema(
        {
            "deal_number": _DEAL_NUMBER,
            "signer_name": {"type": "string"},
            "documents": {"type": "array", "items": {"type": "string"}},
        },
        ["deal_number", "signer_name", "documents"],
    ),
)

TOOL_SEND_VERIFICATION_CODE = AITool(
    name="send_verification_code",
    description="Send an SMS verification code to the customer on a deal.",
    parameters=_schema(
        {"deal_number": _DEAL_NUMBER, "phone": {"type": "string"}},
        ["deal_number"],
    ),
)

TOOL_VERIFY_CODE = AITool(
    name="verify_code",
    description="Check a 4-digit verification code entered by the customer.",
    parameters=_schema({"code": {"type": "string"}}, ["code"]),
)

TOOL_UPDATE_STAGE = AITool(
    name="update_stage",
    description="Move a deal to a new stage, optionally marking it complete.",
    parameters=_schema(
        {
            "deal_number": _DEAL_NUMBER,
            "stage": {"type": "string"},
            "is_complete": {"type": "boolean"},
        },
        ["deal_number", "stage"],
    ),
)

DEAL_TOOLS: tuple[AITool, ...] = (
    TOOL_GET_DEAL,
    TOOL_UPDATE_DEAL,
    TOOL_CALCULATE_PAYMENT,
    TOOL_CALCULATE_TOTAL_FINANCED,
    TOOL_LIST_FINANCING_PROGRAMS,
    TOOL_RATE_FOR_CREDIT_SCORE,
    TOOL_GET_AFTERMARKET_OPTIONS,
    TOOL_SET_ADD_ON,
    TOOL_GENERATE_DOCUMENTS,
    TOOL_APPLY_SIGNATURE,
    TOOL_SEND_VERIFICATION_CODE,
    TOOL_VERIFY_CODE,
    TOOL_UPDATE_STAGE,
)


def _dump(value: Any) -> str:
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, list):
        return json.dumps(
            [v.model_dump(mode="json") if isinstance(v, BaseModel) else v for v in value]
        )
    return json.dumps(value)


class ToolExecutor:
    """Dispatch a function call by name to ``DealTools`` and return JSON text.

    Usable wherever a ``(name, arguments) -> str`` tool handler is expected.
    Missing records come back as ``{"error": "not found"}`` and unknown
    names as ``{"error": "Unknown tool: <name>"}``.
    """

    def __init__(self, tools: DealTools) -> None:
        self._tools = tools

    @property
    def definitions(self) -> list[AITool]:
        return list(DEAL_TOOLS)

    async def __call__(self, name: str, arguments: dict[str, Any]) -> str:
        try:
            result = await self._dispatch(name, arguments)
        except ToolNotFoundError as exc:
            logger.info("Tool %s: %s", name, exc)
            return json.dumps({"error": "not found"})
        except ToolValidationError as exc:
            logger.info("Tool %s rejected arguments: %s", name, exc)
            return json.dumps({"error": str(exc)})
        except (TypeError, KeyError, ValueError) as exc:
            logger.info("Tool %s called with bad arguments: %s", name, exc)
            return json.dumps({"error": f"Invalid arguments for {name}: {exc}"})
        if result is None:
            return json.dumps({"error": f"Unknown tool: {name}"})
        return result

    async def _dispatch(self, name: str, args: dict[str, Any]) -> str | None:
        tools = self._tools
        match name:
            case "get_deal":
                deal = await tools.get_deal(str(args["deal_number"]))
                return json.dumps(deal.summary())
            case "update_deal":
                deal = await tools.update_deal(
                    str(args["deal_number"]),
                    args["updates"],
                    modified_by=args.get("modified_by"),
                )
                return json.dumps(deal.summary())
            case "calculate_payment":
                return _dump(
                    tools.calculate_payment(
                        float(args["principal"]),
                        float(args["annual_rate"]),
                        int(args["term_months"]),
                    )
                )
            case "calculate_total_financed":
                return _dump(
                    await tools.calculate_total_financed(
                        str(args["deal_number"]), float(args.get("extra_cost", 0.0))
                    )
                )
            case "list_financing_programs":
                return _dump(tools.list_financing_programs())
            case "rate_for_credit_score":
                return _dump(tools.rate_for_credit_score(int(args["credit_score"])))
            case "get_aftermarket_options":
                deal_number = args.get("deal_number")
                return _dump(
                    await tools.get_aftermarket_options(
                        str(deal_number) if deal_number is not None else None
                    )
                )
            case "set_add_on":
                deal = await tools.set_add_on(str(args["deal_number"]), str(args["option"]))
                return json.dumps(
                    {"deal_number": deal.deal_number, "selected_add_on": deal.selected_add_on}
                )
            case "generate_documents":
                return _dump(
                    await tools.generate_documents(
                        str(args["deal_number"]),
                        args.get("is_finance"),
                        args.get("add_on"),
                    )
                )
            case "apply_signature":
                return _dump(
                    await tools.apply_signature(
                        str(args["deal_number"]),
                        str(args["signer_name"]),
                        list(args["documents"]),
                    )
                )
            case "send_verification_code":
                return _dump(
                    await tools.send_verification_code(
                        str(args["deal_number"]), args.get("phone")
                    )
                )
            case "verify_code":
                return _dump(tools.verify_code(str(args["code"])))
            case "update_stage":
                deal = await tools.update_stage(
                    str(args["deal_number"]), str(args["stage"]), args.get("is_complete")
                )
                return json.dumps(
                    {
                        "deal_number": deal.deal_number,
                        "current_stage": deal.current_stage,
                        "is_complete": deal.is_complete,
                    }
                )
        return None
