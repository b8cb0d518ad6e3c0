"""Operator input helpers: payload parsing and canned prompts."""

from __future__ import annotations

import json
import uuid
from typing import Any

PROCESS_FILE_PROMPT = (
    "Please process the mortgage application file: {key}. "
    "Analyze the application data and provide a comprehensive assessment including "
    "validation, credit risk analysis, and decision recommendation."
)


def parse_payload_text(text: str) -> Any:
    """Operator-typed payload: JSON when it parses, else ``{"message": text}``."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"message": text}


def build_processing_prompt(file_key: str) -> dict[str, str]:
    """Payload asking the pipeline to assess one stored application file."""
    return {"prompt": PROCESS_FILE_PROMPT.format(key=file_key)}


def new_session_id() -> str:
    # AgentCore requires runtime session ids of at least 33 characters; a uuid4 string is 36.
    return str(uuid.uuid4())
