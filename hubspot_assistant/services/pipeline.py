"""Chat pipeline: model call, command extraction and dispatch to HubSpot."""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

from ..config import Settings
from ..errors import (
    AssistantError,
    CommandExtractionFailed,
    CommandValidationFailed,
    DispatchFailed,
    InvalidRequest,
)
from ..logging_setup import mask_sensitive_data
from ..schemas.chat import ChatResponse, DispatchResult, ExtractedCommand
from .commands import invalid_deal_stage, is_idempotent, validate_command
from .extraction import extract_command
from .formatting import DEAL_STAGE_ERROR, format_failure, format_success
from .history import ConversationHistory
from .llm_client import LLMClient
from .mcp_client import CommandExecutor
from .registry import RegistryClient

logger = logging.getLogger(__name__)

INVALID_REQUEST_MESSAGE = 'Requête invalide. Le champ "userText" est requis.'
MCP_CONFIG_ERROR_MESSAGE = "Erreur lors de la configuration du serveur MCP."

# --- SYSTEM PROMPT ---
SYSTEM_PROMPT = """Vous êtes un assistant IA conversationnel pour la gestion client via HubSpot.

Instructions:
1. Répondez toujours en français de manière naturelle et conversationnelle.
2. Si une action CRM est requise, retournez un objet JSON avec la structure suivante:
{
  "action": "create_contact" | "update_contact" | "search_contacts" | "create_company" | "update_company" | "search_companies" | "create_deal" | "search_deals",
  "data": {
    "command": {
      "name": "hubspot.createContact" | "hubspot.updateContact" | "hubspot.searchContacts" | "hubspot.createCompany" | "hubspot.updateCompany" | "hubspot.searchCompanies" | "hubspot.createDeal" | "hubspot.searchDeals",
      "args": {
        // Pour les contacts (firstName et lastName obligatoires, contactId ou email pour une mise à jour):
        "properties": {"firstName": "string", "lastName": "string", "email": "string", "jobTitle": "string", "phone": "string", "companyId": "string"},
        // Pour les entreprises (name obligatoire, companyId pour une mise à jour):
        "properties": {"name": "string", "domain": "string", "industry": "string", "numberOfEmployees": "number"},
        // Pour les deals (dealName obligatoire):
        "properties": {"dealName": "string", "amount": "number", "dealstage": "appointment_scheduled" | "qualified_to_buy" | "presentation_scheduled" | "contract_sent" | "closed_won" | "closed_lost", "pipeline": "string", "closedate": "string", "hubspot_owner_id": "string", "associatedCompany": "string", "associatedContact": "string"},
        // Pour les recherches de contacts ou d'entreprises:
        "filters": {"term": "string", "properties": ["string"]},
        // Pour les recherches de deals:
        "dealFilters": {"pipeline": "string", "stage": "string", "period": {"start": "string", "end": "string"}, "sort": {"field": "string", "order": "asc" | "desc"}}
      }
    }
  }
}

IMPORTANT: Si une action CRM est requise, retournez uniquement l'objet JSON avec la structure exacte spécifiée ci-dessus. Sinon, répondez simplement en français."""


class ChatPipeline:
    """Owns the collaborators of one application instance."""

    def __init__(
        self,
        llm: LLMClient,
        executor: CommandExecutor,
        settings: Optional[Settings] = None,
        history: Optional[ConversationHistory] = None,
        registry: Optional[RegistryClient] = None,
    ):
        self.llm = llm
        self.executor = executor
        self.settings = settings or Settings()
        self.history = history
        self.registry = registry

    async def build_messages(self, user_text: str) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        if self.history is not None:
            messages.extend(await self.history.snapshot())
        messages.append({"role": "user", "content": user_text})
        return messages

    async def handle_chat_turn(self, user_text: Optional[str]) -> ChatResponse:
        """Answer one user message, running at most one CRM command.

        Raises:
            InvalidRequest: ``user_text`` is missing or blank.
            ModelUnavailable: the language model could not be reached.
        """
        if not isinstance(user_text, str) or not user_text.strip():
            raise InvalidRequest(INVALID_REQUEST_MESSAGE)

        content = await self.llm.complete(await self.build_messages(user_text))
        logger.debug(f"Model response received ({len(content)} chars)")

        try:
            command = extract_command(content)
        except CommandExtractionFailed:
            response = ChatResponse(reply_text=content)
        except CommandValidationFailed as e:
            logger.info(f"Ignoring malformed command in model response: {e.message}")
            response = ChatResponse(reply_text=content)
        else:
            logger.debug(f"Parsed command: {mask_sensitive_data(command.model_dump(mode='json'))}")
            result, reply_text = await self.dispatch(command)
            response = ChatResponse(reply_text=reply_text, command=command, result=result)

        if self.history is not None:
            await self.history.record_turn(user_text, response.reply_text)
        return response

    async def dispatch(self, command: ExtractedCommand) -> Tuple[DispatchResult, str]:
        """Send a validated command and format its outcome. Never raises."""
        stage = invalid_deal_stage(command)
        if stage is not None:
            logger.warning(f"Refusing deal with unknown stage '{stage}'")
            return DispatchResult(succeeded=False, error_message=DEAL_STAGE_ERROR), DEAL_STAGE_ERROR

        logger.info(f"Executing command {command.command_name}")
        logger.debug(f"Command args: {mask_sensitive_data(command.args)}")
        try:
            payload = await self.executor.send(
                command.command_name, command.args, retry=is_idempotent(command)
            )
        except DispatchFailed as e:
            logger.error(f"Error executing MCP command {command.command_name}: {e.message}")
            return DispatchResult(succeeded=False, error_message=e.message), format_failure(e.message)

        logger.debug(f"Command executed successfully: {mask_sensitive_data(payload)}")
        return DispatchResult(succeeded=True, payload=payload), format_success(command, payload)

    async def execute_command(
        self, raw_command: Dict[str, Any]
    ) -> Tuple[ExtractedCommand, DispatchResult, str]:
        """Validate a command supplied directly by the client and run it.

        Raises:
            CommandValidationFailed: the command does not match the schema.
        """
        command = validate_command(raw_command)
        result, message = await self.dispatch(command)
        return command, result, message

    async def apply_mcp_config(self, mcp_config: str) -> None:
        """Reconnect the executor to the server described by ``mcp_config``.

        ``mcp_config`` is URL-encoded JSON carrying at least ``url``.
        """
        if not self.settings.dynamic_mcp_config:
            logger.info("Ignoring mcpConfig: dynamic MCP configuration is disabled")
            return
        try:
            config = json.loads(unquote(mcp_config))
            url = self.settings.mcp_url(
                config["url"],
                server_config={
                    "privacy": {
                        "maskSensitiveData": True,
                        "trackAnalytics": self.settings.debug,
                    },
                    "debug": self.settings.debug,
                },
            )
            await self.executor.reconfigure(url)
        except (ValueError, KeyError, TypeError, DispatchFailed) as e:
            logger.error(f"Error handling MCP configuration: {type(e).__name__}: {e}")
            raise AssistantError(MCP_CONFIG_ERROR_MESSAGE) from e

    async def close(self) -> None:
        await self.executor.close()
        await self.llm.close()
        if self.registry is not None:
            await self.registry.close()
