"""All string enums for dealroute."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class HandlerName(StrEnum):
    """Conversational roles the router can address."""

    MAIN_ENTRY = "mainEntry"
    DEALER_INTERACTION = "dealerInteraction"
    CUSTOMER_GENERAL_INFO = "customerGeneralInfo"
    CUSTOMER_TRANSACTION = "customerTransaction"
    AFTERMARKET_OFFER = "aftermarketOffer"
    CUSTOMER_PAPERWORK = "customerPaperwork"
    TOOL_HANDLER = "toolHandler"


@unique
class WorkflowType(StrEnum):
    DEALER_VERIFICATION = "dealer_verification"
    CUSTOMER_TRANSACTION = "customer_transaction"
    CUSTOMER_GENERAL_INFO = "customer_general_info"
    PAPERWORK_FLOW = "paperwork_flow"
    AFTERMARKET_FLOW = "aftermarket_flow"


@unique
class WorkflowStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    HANDOFF_PENDING = "handoff_pending"
    COMPLETED = "completed"
    FAILED = "failed"


@unique
class RouteAction(StrEnum):
    START = "start"
    CONTINUE = "continue"
    HANDOFF = "handoff"
    RESUME = "resume"


@unique
class RouteReason(StrEnum):
    WORKFLOW_HANDOFF = "workflow_handoff"
    WORKFLOW_CONTINUATION = "workflow_continuation"
    WORKFLOW_RESUME = "workflow_resume"
    CONVERSATION_CONTINUITY = "conversation_continuity"
    USER_SESSION_STATE = "user_session_state"
    DEALER_KEYWORDS = "dealer_keywords"
    TRANSACTION_KEYWORDS = "transaction_keywords"
    PAPERWORK_KEYWORDS = "paperwork_keywords"
    GENERAL_INFO_KEYWORDS = "general_info_keywords"
    AFTERMARKET_KEYWORDS = "aftermarket_keywords"
    DIRECT_TOOL_REQUEST = "direct_tool_request"
    DEFAULT_ENTRY = "default_entry"


@unique
class ToolCategory(StrEnum):
    """Tool categories detected by the pattern classifier.

    Declaration order is the canonical evaluation and merge order.
    """

    DEAL_RETRIEVAL = "deal_retrieval"
    FINANCIAL_CALCULATIONS = "financial_calculations"
    DOCUMENT_GENERATION = "document_generation"
    VERIFICATION = "verification"
    AFTERMARKET = "aftermarket"
    BANK_PROGRAMS = "bank_programs"
    DATA_UPDATE = "data_update"


@unique
class ToolPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@unique
class UserType(StrEnum):
    CUSTOMER = "customer"
    DEALER = "dealer"
