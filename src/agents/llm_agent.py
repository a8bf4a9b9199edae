# src/agents/llm_agent.py
from openai import OpenAI
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from src.config.settings import Settings
import json
import re
import logging

logger = logging.getLogger(__name__)

FENCED_JSON_PATTERN = re.compile(r"```(?:json)?[ \t]*\n([\s\S]*?)\s*```", re.IGNORECASE)
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class CompletionResult(BaseModel):
    """Outcome of a single text-completion call: either text or an error."""
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


def extract_text(response: Any) -> str:
    """
    Pull the generated text out of a completion response.

    Handles plain strings, OpenAI chat completion objects, and dict/list
    payloads carrying a "response" field.
    """
    if response is None:
        return ""
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        return response.get("response") or ""
    if isinstance(response, list):
        return extract_text(response[0]) if response else ""

    choices = getattr(response, "choices", None)
    if choices:
        return choices[0].message.content or ""
    return ""


def parse_ai_response(response: Any) -> Dict[str, Any]:
    """
    Parse a JSON object out of an LLM answer.

    Tries json or untagged fenced code blocks first, then the outermost {...}
    span, then the whole text. The first candidate that parses to an object
    wins. Returns an empty dict when nothing does.
    """
    text = extract_text(response)

    candidates = [match.group(1) for match in FENCED_JSON_PATTERN.finditer(text)]
    match = JSON_OBJECT_PATTERN.search(text)
    if match:
        candidates.append(match.group(0))
    candidates.append(text)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate.strip())
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed
        logger.warning(f"AI response was JSON but not an object: {type(parsed).__name__}")

    logger.warning("Could not parse AI response as a JSON object")
    return {}


class ChatAgent:
    """OpenAI Chatbot client."""

    def __init__(self, config: Settings):
        self.config = config
        self.client = OpenAI(api_key=config.openai_api_key)
        self.model = config.openai_llm_model

    def chat(self, messages: List[dict], temperature: Optional[float] = None,
             max_tokens: Optional[int] = None) -> str:
        """
        Send a list of messages to the OpenAI chat model and get the response.
        Makes a single attempt; errors propagate to the caller.

        Args:
            messages: List of message dicts (e.g., [{"role": "user", "content": "Hello"}])
            temperature: Optional sampling temperature
            max_tokens: Optional cap on generated tokens

        Returns:
            The assistant's reply as a string.
        """
        params = {"model": self.model, "messages": messages}
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        response = self.client.chat.completions.create(**params)
        return extract_text(response)

    def chat_single(self, prompt: str) -> str:
        """
        Send a single prompt to the OpenAI chat model and get the response.

        Args:
            prompt: The user's prompt as a string.

        Returns:
            The assistant's reply as a string.
        """
        messages = [{"role": "user", "content": prompt}]
        return self.chat(messages)

    def complete(self, system_prompt: str, prompt: str, temperature: float = 0.3,
                 max_tokens: int = 300) -> CompletionResult:
        """
        Run a system + user prompt and capture the outcome instead of raising.

        Any failure (transport, rate limit, timeout, empty answer) comes back as
        a CompletionResult with `error` set so callers can pick their fallback.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]
        try:
            text = self.chat(messages, temperature=temperature, max_tokens=max_tokens)
        except Exception as e:
            logger.warning(f"Chat completion failed: {type(e).__name__}: {e}")
            return CompletionResult(error=f"{type(e).__name__}: {e}")

        if not text or not text.strip():
            return CompletionResult(error="Empty completion")
        return CompletionResult(text=text)
