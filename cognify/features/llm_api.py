"""Text model calls over the OpenAI Responses API.

``complete`` is the single free-text channel the tutor builds its index and
dialogue protocols on. ``call_llm`` is the lower-level chat call underneath.
"""

from typing import Iterable, Mapping

import dotenv
import openai

from cognify.errors import ModelUnavailableError
from cognify.util.logs import get_logger, log_function_duration

dotenv.load_dotenv()

logger = get_logger(__name__)

DEFAULT_TEXT_MODEL = "gpt-4o-mini-2024-07-18"
HISTORY_ROLES = ("user", "assistant")

DEFAULT_SYS_PROMPT = (
    "You are Cognify, a patient study tutor. Follow the formatting rules in "
    "the user's message exactly."
)


def build_messages(
    query: str, sys_prompt: str, history: Iterable[Mapping[str, str]] = ()
) -> list[dict[str, str]]:
    """Return the Responses API input: system prompt, history, then `query`."""
    messages = [{"role": "system", "content": sys_prompt}]
    for item in history:
        assert item.get("role") in HISTORY_ROLES and "content" in item, (
            f"Unsupported history item: {item!r}"
        )
        messages.append({"role": item["role"], "content": item["content"]})
    messages.append({"role": "user", "content": query})
    return messages


@log_function_duration()
def call_llm(
    query: str,
    sys_prompt: str,
    history: Iterable[Mapping[str, str]] = (),
    model: str = DEFAULT_TEXT_MODEL,
    temperature: float = 0,
) -> str:
    """Return the model's answer to `query`.

    Args:
        query: The user's prompt.
        sys_prompt: System prompt.
        history: Prior messages as dicts with 'role' (user or assistant)
            and 'content'.
        model: The model to use.
        temperature: Sampling temperature.
    """
    messages = build_messages(query, sys_prompt, history)
    response = openai.OpenAI().responses.create(
        model=model, input=messages, temperature=temperature
    )
    text = response.output_text
    assert isinstance(text, str), "Model response holds no text"
    return text


def complete(prompt: str, model: str = DEFAULT_TEXT_MODEL, temperature: float = 0) -> str:
    """Send one self-contained prompt and return the raw completion.

    Raises:
        ModelUnavailableError: If the service fails or returns no text.
    """
    try:
        return call_llm(
            prompt, sys_prompt=DEFAULT_SYS_PROMPT, model=model, temperature=temperature
        )
    except (openai.OpenAIError, AssertionError) as e:
        logger.warning(f"Model call failed: {e}")
        raise ModelUnavailableError(str(e)) from e
