"""Application settings loaded from the environment."""

import base64
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from dotenv import load_dotenv

from .errors import ConfigurationError

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

SMITHERY_SERVER_BASE = "https://server.smithery.ai"
SMITHERY_REGISTRY_BASE = "https://registry.smithery.ai"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration for the assistant."""
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: Optional[str] = None
    server_name: Optional[str] = None
    profile_id: Optional[str] = None
    smithery_api_key: Optional[str] = None
    environment: str = "production"
    llm_timeout_seconds: float = 30.0
    mcp_timeout_seconds: float = 30.0
    history_enabled: bool = False
    history_max_messages: int = 20
    dynamic_mcp_config: bool = False
    registry_lookup: bool = False
    registry_ttl_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            server_name=os.getenv("SERVER_NAME"),
            profile_id=os.getenv("PROFILE_ID"),
            smithery_api_key=os.getenv("SMITHERY_API_KEY"),
            environment=os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "production",
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
            mcp_timeout_seconds=float(os.getenv("MCP_TIMEOUT_SECONDS", "30")),
            history_enabled=_env_flag("HISTORY_ENABLED"),
            history_max_messages=int(os.getenv("HISTORY_MAX_MESSAGES", "20")),
            dynamic_mcp_config=_env_flag("DYNAMIC_MCP_CONFIG"),
            registry_lookup=_env_flag("REGISTRY_LOOKUP"),
            registry_ttl_seconds=float(os.getenv("REGISTRY_TTL_SECONDS", "300")),
        )

    @property
    def debug(self) -> bool:
        return self.environment == "development"

    def missing(self) -> List[str]:
        """Names of required variables that are not set."""
        required = {
            "OPENAI_API_KEY": self.openai_api_key,
            "SERVER_NAME": self.server_name,
            "PROFILE_ID": self.profile_id,
            "SMITHERY_API_KEY": self.smithery_api_key,
        }
        return [name for name, value in required.items() if not value]

    def validate(self) -> "Settings":
        """Raise ConfigurationError when required variables are absent."""
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                f"Variables d'environnement manquantes: {', '.join(missing)}"
            )
        return self

    def mcp_url(
        self,
        base_url: Optional[str] = None,
        server_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Build the profile-based MCP connection URL.

        ``server_config`` is passed to Smithery as base64-encoded JSON.
        """
        base = base_url or f"{SMITHERY_SERVER_BASE}/{self.server_name}/mcp"
        params = {"profile": self.profile_id, "api_key": self.smithery_api_key}
        if server_config:
            encoded = json.dumps(server_config).encode("utf-8")
            params["config"] = base64.b64encode(encoded).decode("ascii")
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{urlencode(params)}"
