"""Extraction of a CRM command from free model text."""

import json
from typing import Any, Dict, Iterator, Optional

from ..errors import CommandExtractionFailed
from ..schemas.chat import ExtractedCommand
from .commands import validate_command


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` span, in order of its opening brace.

    Braces inside JSON string literals are ignored.
    """
    for start, char in enumerate(text):
        if char != "{":
            continue
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            current = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif current == "\\":
                    escaped = True
                elif current == '"':
                    in_string = False
                continue
            if current == '"':
                in_string = True
            elif current == "{":
                depth += 1
            elif current == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:index + 1]
                    break


def find_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first balanced span of ``text`` that parses as a JSON object."""
    if not text:
        return None
    for span in _balanced_spans(text):
        try:
            parsed = json.loads(span)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_json(text: str) -> Dict[str, Any]:
    """Like find_json_object, but raise when no object is present."""
    obj = find_json_object(text)
    if obj is None:
        raise CommandExtractionFailed("Aucun objet JSON dans la réponse du modèle.")
    return obj


def extract_command(text: str) -> ExtractedCommand:
    """Parse and validate the command carried by a model reply.

    Pure function of ``text``.

    Raises:
        CommandExtractionFailed: no JSON object in the text.
        CommandValidationFailed: the object does not match the command schema.
    """
    return validate_command(extract_json(text))
