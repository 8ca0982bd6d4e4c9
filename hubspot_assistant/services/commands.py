"""HubSpot command schema: allowed actions, remote names and validation."""

from typing import Any, Dict, Optional, Tuple

from ..errors import CommandValidationFailed
from ..schemas.chat import CommandAction, CommandTarget, ExtractedCommand

DEAL_STAGES: Tuple[str, ...] = (
    "appointment_scheduled",
    "qualified_to_buy",
    "presentation_scheduled",
    "contract_sent",
    "closed_won",
    "closed_lost",
)

COMMAND_NAMES: Dict[CommandAction, str] = {
    CommandAction.CREATE_CONTACT: "hubspot.createContact",
    CommandAction.UPDATE_CONTACT: "hubspot.updateContact",
    CommandAction.SEARCH_CONTACTS: "hubspot.searchContacts",
    CommandAction.CREATE_COMPANY: "hubspot.createCompany",
    CommandAction.UPDATE_COMPANY: "hubspot.updateCompany",
    CommandAction.SEARCH_COMPANIES: "hubspot.searchCompanies",
    CommandAction.CREATE_DEAL: "hubspot.createDeal",
    CommandAction.SEARCH_DEALS: "hubspot.searchDeals",
}

TARGETS: Dict[CommandAction, CommandTarget] = {
    CommandAction.CREATE_CONTACT: CommandTarget.CONTACT,
    CommandAction.UPDATE_CONTACT: CommandTarget.CONTACT,
    CommandAction.SEARCH_CONTACTS: CommandTarget.CONTACT,
    CommandAction.CREATE_COMPANY: CommandTarget.COMPANY,
    CommandAction.UPDATE_COMPANY: CommandTarget.COMPANY,
    CommandAction.SEARCH_COMPANIES: CommandTarget.COMPANY,
    CommandAction.CREATE_DEAL: CommandTarget.DEAL,
    CommandAction.SEARCH_DEALS: CommandTarget.DEAL,
}

REQUIRED_PROPERTIES: Dict[CommandAction, Tuple[str, ...]] = {
    CommandAction.CREATE_CONTACT: ("firstName", "lastName"),
    CommandAction.UPDATE_CONTACT: ("firstName", "lastName"),
    CommandAction.CREATE_COMPANY: ("name",),
    CommandAction.UPDATE_COMPANY: ("name",),
    CommandAction.CREATE_DEAL: ("dealName",),
}

# Any one of these identifies the record an update applies to.
IDENTIFYING_KEYS: Dict[CommandAction, Tuple[str, ...]] = {
    CommandAction.UPDATE_CONTACT: ("contactId", "id", "email"),
    CommandAction.UPDATE_COMPANY: ("companyId", "id"),
}

# Commands that only read from the CRM and can be resent safely.
IDEMPOTENT_ACTIONS = frozenset({
    CommandAction.SEARCH_CONTACTS,
    CommandAction.SEARCH_COMPANIES,
    CommandAction.SEARCH_DEALS,
})

SORT_ORDERS = ("asc", "desc")


def _is_present(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return isinstance(value, (int, float))


def _command_args(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Locate the argument mapping of a raw command object.

    The prompt asks for ``{"action", "data": {"command": {"name", "args"}}}``;
    a flat ``{"action", "properties" | "filters" | "dealFilters"}`` object is
    accepted as well.
    """
    data = obj.get("data")
    if data is not None:
        command = data.get("command") if isinstance(data, dict) else None
        args = command.get("args") if isinstance(command, dict) else None
        if not isinstance(args, dict):
            raise CommandValidationFailed("Le champ data.command.args est absent ou invalide.")
        return args
    return {
        key: obj[key]
        for key in ("properties", "filters", "dealFilters", "contactId", "companyId", "id")
        if key in obj
    }


def _check_properties(action: CommandAction, args: Dict[str, Any]) -> Dict[str, Any]:
    properties = args.get("properties")
    if not isinstance(properties, dict):
        raise CommandValidationFailed(f"L'action {action.value} requiert un objet 'properties'.")

    for key, value in properties.items():
        if value is not None and (isinstance(value, bool) or not isinstance(value, (str, int, float))):
            raise CommandValidationFailed(f"La propriété '{key}' doit être une chaîne ou un nombre.")

    missing = [key for key in REQUIRED_PROPERTIES[action] if not _is_present(properties.get(key))]
    if missing:
        raise CommandValidationFailed(
            f"Propriétés requises manquantes pour {action.value}: {', '.join(missing)}"
        )

    identifiers = IDENTIFYING_KEYS.get(action)
    if identifiers and not any(
        _is_present(args.get(key)) or _is_present(properties.get(key)) for key in identifiers
    ):
        raise CommandValidationFailed(
            f"L'action {action.value} requiert un identifiant ({' ou '.join(identifiers)})."
        )
    return properties


def _check_search_filters(action: CommandAction, args: Dict[str, Any]) -> Dict[str, Any]:
    filters = args.get("filters")
    if not isinstance(filters, dict) or not _is_present(filters.get("term")):
        raise CommandValidationFailed(f"L'action {action.value} requiert un terme de recherche.")
    fields = filters.get("properties")
    if fields is not None and (
        not isinstance(fields, list) or not all(isinstance(field, str) for field in fields)
    ):
        raise CommandValidationFailed("filters.properties doit être une liste de chaînes.")
    return filters


def _check_deal_filters(args: Dict[str, Any]) -> Dict[str, Any]:
    deal_filters = args.get("dealFilters", args.get("filters", {}))
    if not isinstance(deal_filters, dict):
        raise CommandValidationFailed("dealFilters doit être un objet.")
    for key in ("period", "sort"):
        if key in deal_filters and not isinstance(deal_filters[key], dict):
            raise CommandValidationFailed(f"dealFilters.{key} doit être un objet.")
    order = deal_filters.get("sort", {}).get("order")
    if order is not None and order not in SORT_ORDERS:
        raise CommandValidationFailed("dealFilters.sort.order doit valoir 'asc' ou 'desc'.")
    return deal_filters


def validate_command(obj: Any) -> ExtractedCommand:
    """Validate a raw JSON object against the command schema.

    Raises:
        CommandValidationFailed: the object is not a well-formed command.
    """
    if not isinstance(obj, dict):
        raise CommandValidationFailed("La commande doit être un objet JSON.")

    raw_action = obj.get("action")
    try:
        action = CommandAction(raw_action)
    except ValueError:
        raise CommandValidationFailed(f"Action inconnue: {raw_action!r}")

    args = _command_args(obj)
    properties: Dict[str, Any] = {}
    filters: Optional[Dict[str, Any]] = None

    if action in REQUIRED_PROPERTIES:
        properties = _check_properties(action, args)
    elif action == CommandAction.SEARCH_DEALS:
        filters = _check_deal_filters(args)
    else:
        filters = _check_search_filters(action, args)

    return ExtractedCommand(
        action=action,
        target=TARGETS[action],
        command_name=COMMAND_NAMES[action],
        properties=properties,
        filters=filters,
        args=args,
    )


def invalid_deal_stage(command: ExtractedCommand) -> Optional[str]:
    """Return the deal stage of a create_deal command if it is not allowed."""
    if command.action != CommandAction.CREATE_DEAL:
        return None
    stage = command.properties.get("dealstage")
    if stage is None or stage in DEAL_STAGES:
        return None
    return str(stage)


def is_idempotent(command: ExtractedCommand) -> bool:
    return command.action in IDEMPOTENT_ACTIONS
