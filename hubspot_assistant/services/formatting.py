"""User-facing French messages for command outcomes."""

from typing import Any, Dict, Optional

from ..schemas.chat import CommandAction, ExtractedCommand
from .commands import DEAL_STAGES

GENERIC_SUCCESS = "Action effectuée avec succès"

DEAL_STAGE_ERROR = (
    "Erreur: La valeur du dealstage n'est pas valide. "
    f"Les valeurs valides sont: {', '.join(DEAL_STAGES)}"
)

SUCCESS_TEMPLATES: Dict[CommandAction, str] = {
    CommandAction.CREATE_CONTACT: "Contact créé avec succès: {firstName} {lastName}",
    CommandAction.UPDATE_CONTACT: "Contact mis à jour avec succès: {firstName} {lastName}",
    CommandAction.CREATE_COMPANY: "Entreprise créée avec succès: {name}",
    CommandAction.UPDATE_COMPANY: "Entreprise mise à jour avec succès: {name}",
    CommandAction.SEARCH_CONTACTS: "Résultats de recherche pour: {term}",
    CommandAction.SEARCH_COMPANIES: "Résultats de recherche pour: {term}",
    CommandAction.CREATE_DEAL: "Deal créé avec succès: {dealName}",
    CommandAction.SEARCH_DEALS: "Résultats de recherche des deals",
}


class _Blank(dict):
    def __missing__(self, key):
        return ""


def _record_id(result: Optional[Dict[str, Any]]) -> Optional[str]:
    if not isinstance(result, dict):
        return None
    for key in ("id", "hs_object_id", "objectId"):
        if result.get(key):
            return str(result[key])
    return None


def format_success(command: ExtractedCommand, result: Optional[Dict[str, Any]] = None) -> str:
    """Confirmation text for a command the executor accepted."""
    template = SUCCESS_TEMPLATES.get(command.action)
    if template is None:
        return GENERIC_SUCCESS
    values = _Blank(command.properties)
    values.update(command.filters or {})
    message = template.format_map(values).strip()
    record_id = _record_id(result)
    if record_id:
        message += f" (ID {record_id})"
    return message


def is_deal_stage_error(error_message: str) -> bool:
    return "dealstage" in (error_message or "").lower()


def format_failure(error_message: str) -> str:
    """Failure text for a command the executor rejected."""
    if is_deal_stage_error(error_message):
        return DEAL_STAGE_ERROR
    return f"Erreur lors de l'exécution de l'action: {error_message}"
