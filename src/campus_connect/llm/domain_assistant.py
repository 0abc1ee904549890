from __future__ import annotations

import logging
from typing import Any

from campus_connect.config import SETTINGS
from campus_connect.data_models import BotReply

logger = logging.getLogger(__name__)

_DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly campus assistant that helps students find tutors, "
    "post help requests and find teammates. "
    "Reword the drafted reply in a warm, concise tone. "
    "Keep every subject, department and count from the draft and do not add new facts."
)


def rephrase_with_domain_assistant(message: str, reply: BotReply) -> str | None:
    """Let the model reword a drafted reply.

    Returns ``None`` whenever the drafted text should be used as is: no API key,
    no SDK, a failed request or an empty answer. Routing never depends on this.
    """
    if not SETTINGS.openai_api_key:
        return None

    try:
        from openai import OpenAI
    except Exception as exc:
        logger.warning("OpenAI SDK unavailable for reply phrasing: %s", exc)
        return None

    client = OpenAI(api_key=SETTINGS.openai_api_key)
    try:
        response = client.responses.create(
            model=SETTINGS.openai_model,
            input=[
                {"role": "system", "content": SETTINGS.openai_system_prompt or _DEFAULT_SYSTEM_PROMPT},
                {"role": "user", "content": _phrasing_prompt(message, reply)},
            ],
            temperature=0.3,
        )
    except Exception as exc:
        logger.warning("Responses API request failed: %s", exc)
        return None

    text = _output_text(response)
    return text or None


def _phrasing_prompt(message: str, reply: BotReply) -> str:
    lines = [f"Student message: {message}", "", "Drafted reply:", reply.text, ""]
    if reply.navigation is not None:
        lines.append(f"After this reply the student is taken to {reply.navigation.url()}.")
    lines.append("Return only the reworded reply.")
    return "\n".join(lines)


def _output_text(response: Any) -> str:
    if isinstance(response, dict):
        text = response.get("output_text")
    else:
        text = getattr(response, "output_text", None)
    return str(text).strip() if text else ""
