"""Turns raw model text into a validated Classification.

The model is asked for bare JSON, but fenced blocks and extra keys are
tolerated. Anything else raises ClassificationOutputError, which the
analyzer reports as a per-response failure.
"""

import json
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from classification.errors import ClassificationOutputError
from classification.schema import CLASSIFICATION_FIELDS, Classification

_FENCED_BLOCK = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def _unwrap_fence(text: str) -> str:
    """Return the body of a ```json fenced block, or the text unchanged."""
    stripped = text.strip()
    fenced = _FENCED_BLOCK.match(stripped)
    return fenced.group(1) if fenced else stripped


def _describe(exc: ValidationError) -> List[str]:
    return [
        ".".join(str(part) for part in item["loc"]) + ": " + item["msg"]
        for item in exc.errors()
    ]


def validate_classification_output(raw_response: str) -> Classification:
    """Parse *raw_response* and validate it against the Classification schema.

    Only the known classification keys are kept before validation.

    Raises:
        ClassificationOutputError: stage "json_parse" for malformed JSON,
            stage "schema" for a non-object or invalid fields.
    """
    try:
        payload: Any = json.loads(_unwrap_fence(raw_response or ""))
    except ValueError as exc:
        raise ClassificationOutputError("json_parse", [str(exc)], raw_response) from exc

    if not isinstance(payload, dict):
        raise ClassificationOutputError(
            "schema", ["expected a JSON object at the top level"], raw_response
        )

    known: Dict[str, Any] = {key: payload[key] for key in CLASSIFICATION_FIELDS if key in payload}
    try:
        return Classification.model_validate(known)
    except ValidationError as exc:
        raise ClassificationOutputError("schema", _describe(exc), raw_response) from exc
