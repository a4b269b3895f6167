"""LLM JSON parsing utilities with Markdown code block support and retry logic."""

from __future__ import annotations

import json
import re
from typing import Any, cast

from subweave.providers.llm import LLMProvider, Message

_THINK_BLOCK_RE = re.compile(r"^\s*<think>[\s\S]*?</think>\s*", re.IGNORECASE)
_THINK_TAG_RE = re.compile(r"</?think>\s*", re.IGNORECASE)
_CODE_BLOCK_PATTERNS = (
    re.compile(r"```json\s*([\s\S]*?)\s*```"),
    re.compile(r"```\s*([\s\S]*?)\s*```"),
)

JSONData = dict[str, Any] | list[Any]


def _as_json_data(data: Any, text: str) -> JSONData:
    if isinstance(data, dict):
        return cast(dict[str, Any], data)
    if isinstance(data, list):
        return data
    raise json.JSONDecodeError("Expected a JSON object/array", text, 0)


def parse_llm_json(text: str) -> JSONData:
    """Parse JSON from LLM output.

    Handles plain JSON, fenced ```json blocks, leading ``<think>`` blocks and
    surrounding prose (the first ``{``/``[`` to the matching last bracket).

    Raises:
        json.JSONDecodeError: If no JSON object/array can be recovered.
    """
    text = (text or "").strip()
    text = _THINK_BLOCK_RE.sub("", text).strip()
    text = _THINK_TAG_RE.sub("", text).strip()

    for pattern in _CODE_BLOCK_PATTERNS:
        match = pattern.search(text)
        if match:
            text = match.group(1).strip()
            break

    try:
        return _as_json_data(json.loads(text), text)
    except json.JSONDecodeError as exc:
        first_error = exc

    starts = [(text.find(ch), ch) for ch in ("{", "[") if text.find(ch) != -1]
    if not starts:
        raise first_error
    start_idx, start_ch = min(starts, key=lambda x: x[0])
    end_idx = text.rfind("}" if start_ch == "{" else "]")
    if end_idx <= start_idx:
        raise first_error

    candidate = text[start_idx : end_idx + 1].strip()
    return _as_json_data(json.loads(candidate), candidate)


class LLMJSONHelper:
    """Ask an LLM for JSON, feeding parse errors back on failure."""

    def __init__(self, llm: LLMProvider, max_retries: int = 3) -> None:
        self.llm = llm
        self.max_retries = max(1, int(max_retries))

    async def complete_json(
        self,
        messages: list[Message],
        temperature: float = 0.3,
    ) -> JSONData:
        """Complete and parse; raises ValueError after ``max_retries`` bad replies."""
        current_messages = list(messages)
        last_error: Exception | None = None
        last_response = ""

        for attempt in range(self.max_retries):
            completion = await self.llm.complete_with_usage(
                current_messages, temperature=temperature
            )
            last_response = completion.text
            try:
                return parse_llm_json(completion.text)
            except json.JSONDecodeError as exc:
                last_error = exc
                if attempt < self.max_retries - 1:
                    current_messages = current_messages + [
                        Message(role="assistant", content=last_response),
                        Message(
                            role="user",
                            content=(
                                f"JSON parsing failed: {exc.msg} (position {exc.pos}).\n"
                                "Reply again with valid JSON only. You may use a ```json ... ``` block."
                            ),
                        ),
                    ]

        raise ValueError(
            f"JSON parsing failed after {self.max_retries} attempts.\n"
            f"Last error: {last_error}\n"
            f"Last response: {last_response[:500]}..."
        )
