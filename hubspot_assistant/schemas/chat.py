"""Schemas for chatbot request and response."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommandAction(str, Enum):
    """CRM actions the model may request."""
    CREATE_CONTACT = "create_contact"
    UPDATE_CONTACT = "update_contact"
    SEARCH_CONTACTS = "search_contacts"
    CREATE_COMPANY = "create_company"
    UPDATE_COMPANY = "update_company"
    SEARCH_COMPANIES = "search_companies"
    CREATE_DEAL = "create_deal"
    SEARCH_DEALS = "search_deals"


class CommandTarget(str, Enum):
    """CRM object a command operates on."""
    CONTACT = "contact"
    COMPANY = "company"
    DEAL = "deal"


class ExtractedCommand(CamelModel):
    """A validated CRM command parsed from a model reply."""
    action: CommandAction
    target: CommandTarget
    command_name: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    filters: Optional[Dict[str, Any]] = None
    args: Dict[str, Any] = Field(default_factory=dict)


class DispatchResult(CamelModel):
    """Outcome of one command sent to the executor."""
    succeeded: bool
    payload: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None


class ChatMessage(BaseModel):
    """A single chat message."""
    role: str  # "user" or "assistant"
    content: str


class ChatRequest(BaseModel):
    """Request schema for chat endpoint."""
    # Empty or absent text is rejected by the pipeline, not by pydantic.
    user_text: Optional[str] = Field(
        None, validation_alias=AliasChoices("userText", "userQuery", "user_text")
    )
    mcp_config: Optional[str] = Field(
        None, validation_alias=AliasChoices("mcpConfig", "mcp_config")
    )


class ChatResponse(CamelModel):
    """Response schema for chat endpoint."""
    reply_text: str
    command: Optional[ExtractedCommand] = None
    result: Optional[DispatchResult] = None


class CommandRequest(BaseModel):
    """Request schema for direct command execution."""
    command: Dict[str, Any]


class CommandResponse(CamelModel):
    """Response schema for direct command execution."""
    success: bool
    message: str
    command: Optional[ExtractedCommand] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
