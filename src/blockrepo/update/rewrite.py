from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Protocol

from ..errors import RewriteFailed

DEFAULT_MODEL = "claude-3-5-sonnet-latest"

_SYSTEM_PROMPT = (
    "You merge upstream changes into a locally modified source file. "
    "Keep the local modifications unless the upstream change replaces them. "
    "Respond with only the complete file contents, without explanation or code fences."
)


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[rewrite] {message}", file=sys.stderr, flush=True)


@dataclass(frozen=True)
class SourceFile:
    content: str
    path: str


class Rewriter(Protocol):
    def rewrite(self, original: SourceFile, new: SourceFile) -> str: ...


def build_prompt(original: SourceFile, new: SourceFile) -> str:
    return (
        f"Local file ({original.path}):\n```\n{original.content}\n```\n\n"
        f"Upstream file ({new.path}):\n```\n{new.content}\n```\n\n"
        "Return the updated local file."
    )


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return text
    lines = stripped.splitlines()
    if lines[-1].strip() == "```":
        lines = lines[1:-1]
    else:
        lines = lines[1:]
    return "\n".join(lines) + "\n"


class AnthropicRewriter:
    """Rewrite service backed by the Anthropic messages API."""

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        max_tokens: int = 8192,
    ):
        self.model = model or os.environ.get("BLOCKREPO_AI_MODEL") or DEFAULT_MODEL
        self.api_key = api_key
        self.max_tokens = max_tokens

    def rewrite(self, original: SourceFile, new: SourceFile) -> str:
        api_key = self.api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise RewriteFailed("ANTHROPIC_API_KEY is not set")

        import anthropic

        client = anthropic.Anthropic(api_key=api_key)
        _log(f"{self.model}: {original.path}")
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(original, new)}],
            )
        except anthropic.APIError as exc:
            raise RewriteFailed(f"Error getting completions: {exc}") from exc

        text = "".join(
            getattr(part, "text", "")
            for part in response.content
            if getattr(part, "type", None) == "text"
        )
        if not text.strip():
            raise RewriteFailed("The model returned no content")
        return strip_code_fence(text)
