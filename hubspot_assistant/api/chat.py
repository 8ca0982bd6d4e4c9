"""API routes for chatbot."""

import logging

from fastapi import APIRouter, Depends, Request

from ..schemas.chat import ChatRequest, ChatResponse, CommandRequest, CommandResponse
from ..services.pipeline import ChatPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline(request: Request) -> ChatPipeline:
    return request.app.state.pipeline


@router.post("", response_model=ChatResponse)
async def chat(request: ChatRequest, pipeline: ChatPipeline = Depends(get_pipeline)):
    """Process a chat message and return AI response.

    The assistant can:
    - Create and update contacts and companies
    - Create deals
    - Search contacts, companies and deals
    """
    if request.mcp_config:
        await pipeline.apply_mcp_config(request.mcp_config)

    return await pipeline.handle_chat_turn(request.user_text)


@router.post("/hubspot", response_model=CommandResponse)
async def execute_command(request: CommandRequest, pipeline: ChatPipeline = Depends(get_pipeline)):
    """Run a HubSpot command built by the client."""
    command, result, message = await pipeline.execute_command(request.command)
    return CommandResponse(
        success=result.succeeded,
        message=message,
        command=command,
        result=result.payload,
        error=result.error_message,
    )


@router.get("/health")
async def chat_health():
    """Health check for chat service."""
    return {"status": "ok", "service": "chatbot"}
