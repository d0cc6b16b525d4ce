import json
import re
from typing import Any, Dict, List, Union

from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, tolerating markdown code fences.

    Structured-output responses are plain JSON, but some OpenAI-compatible
    gateways still wrap the body in ```json fences.

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON object or None if parsing fails
    """
    if not text:
        return None

    cleaned_text = _FENCE.sub("", text.strip()).strip()

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(
            "JSON parse failed",
            extra={"error": str(e), "preview": cleaned_text[:200]},
        )
        return None
