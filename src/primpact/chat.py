"""Codebase chat: whole-repository context and streamed answers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Literal

from pydantic import BaseModel

from primpact.codebase.models import CodebaseIndex, ModuleInfo
from primpact.codebase.overview import directory_structure, import_hubs
from primpact.generators.prompts import build_chat_system_prompt
from primpact.llm.base import LLMProvider, Message

MAX_HISTORY_MESSAGES = 10
CHAT_MAX_TOKENS = 2048


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


def _format_module(module: ModuleInfo) -> str:
    parts = [f"### `{module.path}`"]
    if module.summary:
        parts.append(module.summary)
    if module.exports:
        parts.append(f"- Exports: {', '.join(module.exports)}")
    if module.imports:
        parts.append(f"- Imports: {', '.join(module.imports)}")
    return "\n".join(parts)


def build_chat_context(index: CodebaseIndex) -> str:
    """Markdown overview of the whole indexed repository."""
    sections = [f"# Repo: {index.repo_full_name}", f"Commit: {index.commit_sha[:7]}\n"]

    structure = directory_structure(index.tree)
    if structure:
        sections.append("## Directory Structure")
        sections.extend(structure)
        sections.append("")

    if index.modules:
        sections.append("## Modules")
        sections.extend(_format_module(m) for m in index.modules)
        sections.append("")

    hubs = import_hubs(index.modules)
    if hubs:
        sections.append("## Most Imported")
        sections.extend(hubs)
        sections.append("")

    return "\n".join(sections)


def trim_history(messages: list[ChatMessage]) -> list[ChatMessage]:
    return messages[-MAX_HISTORY_MESSAGES:]


async def stream_chat(
    provider: LLMProvider,
    index: CodebaseIndex,
    history: list[ChatMessage],
) -> AsyncIterator[str]:
    """Stream the assistant's answer to the last message in ``history``."""
    messages = [Message(role="system", content=build_chat_system_prompt(build_chat_context(index)))]
    messages.extend(Message(role=m.role, content=m.content) for m in trim_history(history))
    async for chunk in provider.stream(messages, temperature=provider.temperature, max_tokens=CHAT_MAX_TOKENS):
        yield chunk
