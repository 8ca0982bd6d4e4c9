"""Logging configuration and secret masking."""

import logging
import re
from typing import Any

MASK = "***"

# Keys whose values never reach the logs.
MASK_KEYS = {
    "api_key",
    "apikey",
    "hubspotapikey",
    "smithery_api_key",
    "openai_api_key",
    "authorization",
    "email",
    "phone",
}

_URL_SECRET = re.compile(r"(api_key=)[^&\s]+", re.IGNORECASE)


def configure_logging(debug: bool = False) -> None:
    """Configure root logging for the service."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs full request URLs, which carry the Smithery key.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_url(url: str) -> str:
    """Hide the api_key query parameter of a URL."""
    return _URL_SECRET.sub(r"\1" + MASK, url)


def mask_sensitive_data(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive values replaced by ``***``."""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in MASK_KEYS:
                masked[key] = MASK
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    if isinstance(data, str):
        return mask_url(data)
    return data
