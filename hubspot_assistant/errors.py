"""Error taxonomy for the HubSpot assistant."""

from typing import Any, Dict, Optional


class AssistantError(Exception):
    """Base class for errors raised by the assistant.

    ``message`` is the French, user-facing text returned to the caller.
    """

    status_code = 500

    def __init__(self, message: str, command: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.command = command


class InvalidRequest(AssistantError):
    """The inbound request is missing its user text."""

    status_code = 400


class ModelUnavailable(AssistantError):
    """The language model call failed after its retry."""

    status_code = 503


class CommandExtractionFailed(AssistantError):
    """No JSON object could be found in the model reply. Non-fatal."""


class CommandValidationFailed(AssistantError):
    """A JSON object was found but does not match the command schema. Non-fatal."""

    status_code = 400


class DispatchFailed(AssistantError):
    """The command executor rejected or failed to run a command."""

    status_code = 502

    def __init__(
        self,
        message: str,
        command: Optional[Dict[str, Any]] = None,
        transient: bool = False,
    ):
        super().__init__(message, command)
        self.transient = transient


class ConfigurationError(AssistantError):
    """Required settings are missing. Fatal at startup."""
