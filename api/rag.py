"""Retrieval + chat: put the whole knowledge base in front of the question and ask the LLM."""

import logging
import os
from typing import List, Optional

from kb_ingest.config import ChatConfig
from kb_ingest.db import API_KEY_CONFIG, Database
from kb_ingest.models import Document

logger = logging.getLogger("kb_ingest")

SYSTEM_PROMPT = """You are the support assistant of a helpdesk. \
Help users describe bugs and feature requests clearly and answer questions about the product. \
When knowledge base excerpts are provided, prefer them over general knowledge and mention the source. \
If you don't know the answer, say so and suggest opening a ticket."""

CONTEXT_HEADER = (
    "Use the following knowledge base to answer the user's question. "
    "If the answer is not in the knowledge base, say so."
)

PROVIDER_ENV_KEYS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


class ApiKeyMissingError(ValueError):
    """Raised when no LLM API key can be resolved."""


def build_context(documents: List[Document]) -> str:
    """Concatenate every document, in store order, under a fixed instruction line."""
    if not documents:
        return ""

    parts = [CONTEXT_HEADER]
    for doc in documents:
        parts.append(f"--- Source: {doc.filename} ---\n{doc.content}")
    return "\n\n".join(parts)


def augment_message(message: str, context: str) -> str:
    if not context:
        return message
    return f"{context}\n\nUser question: {message}"


def build_messages(history: Optional[List[dict]], message: str) -> List[dict]:
    """Convert ``{role, parts}`` turns into provider messages.

    ``model`` turns become ``assistant``. Both providers want a conversation
    that opens with the user and alternates, so leading assistant turns are
    dropped and consecutive turns of the same role are merged.
    """
    messages: List[dict] = []
    for turn in (history or []) + [{"role": "user", "parts": message}]:
        role = "assistant" if turn.get("role") in ("model", "assistant") else "user"
        content = turn.get("parts") or ""
        if not content:
            continue
        if not messages and role == "assistant":
            continue
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += f"\n\n{content}"
        else:
            messages.append({"role": role, "content": content})
    return messages


def resolve_api_key(explicit: Optional[str], db: Database, provider: str) -> str:
    """Per-request key, then the stored key, then the process environment."""
    if explicit:
        return explicit

    stored = db.get_config_value(API_KEY_CONFIG)
    if stored:
        return stored

    env_key = os.environ.get(PROVIDER_ENV_KEYS.get(provider, ""), "")
    if env_key:
        return env_key

    raise ApiKeyMissingError("LLM API key not configured")


async def complete_anthropic(messages: List[dict], api_key: str, config: ChatConfig) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=config.anthropic_model,
        max_tokens=config.max_tokens,
        system=SYSTEM_PROMPT,
        messages=messages,
    )
    return "".join(block.text for block in response.content if block.type == "text")


async def complete_openai(messages: List[dict], api_key: str, config: ChatConfig) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    system_messages = [{"role": "system", "content": SYSTEM_PROMPT}]

    response = await client.chat.completions.create(
        model=config.openai_model,
        messages=system_messages + messages,
        max_tokens=config.max_tokens,
    )
    return response.choices[0].message.content or ""


async def generate(
    db: Database,
    message: str,
    history: Optional[List[dict]],
    config: ChatConfig,
    api_key: Optional[str] = None,
    provider: Optional[str] = None,
) -> str:
    """Full pipeline: resolve key, retrieve, augment, call the provider once."""
    provider = provider or config.provider
    key = resolve_api_key(api_key, db, provider)

    documents = db.get_ready_documents()
    context = build_context(documents)
    messages = build_messages(history, augment_message(message, context))
    logger.info(f"Chat via {provider}: {len(documents)} documents in context, {len(messages)} messages")

    if provider == "openai":
        return await complete_openai(messages, key, config)
    return await complete_anthropic(messages, key, config)
