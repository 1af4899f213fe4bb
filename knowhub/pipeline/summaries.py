"""
Per-result summaries for /search items.

One short model-written sentence per result, generated concurrently
and alongside answer synthesis.  Failures never reach the response:

    near-empty text      -> "<Type>: <title>"
    model error          -> first sentence of the text, else a
                            verb phrase built from title and type
    unusable reply       -> verb phrase built from title and type
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

from knowhub.core.errors import UpstreamError
from knowhub.prompts.answer import SUMMARY_SYSTEM_PROMPT, build_summary_prompt
from knowhub.schemas.search import Snippet
from knowhub.utils.logging import get_logger
from knowhub.utils.text import collapse_whitespace, excerpt

logger = get_logger("knowhub.pipeline.summaries")

MIN_TEXT_CHARS = 50
PROMPT_TEXT_CHARS = 2500
MIN_SUMMARY_CHARS = 20
MAX_SUMMARY_CHARS = 250
SHORTENED_SUMMARY_CHARS = 200
TITLE_CHARS = 120
QUICK_EXCERPT_CHARS = 180

TYPE_VERBS = {
    "Guide": "Provides guidance on",
    "Manual": "Details procedures for",
    "Template": "Offers template for",
    "Report": "Presents findings on",
    "News": "Discusses recent developments in",
    "Blog": "Explores topics related to",
    "Case Study": "Examines case study of",
    "Framework": "Outlines framework for",
    "Policy": "Describes policy on",
    "Standard": "Defines standards for",
}

# Site chrome and mail headers that scraped pages carry into the index
_BOILERPLATE = [
    re.compile(r"Skip to (content|main|navigation)", re.IGNORECASE),
    re.compile(r"Search\s+(About|Home|Menu|Tools)", re.IGNORECASE),
    re.compile(r"^(Email|From|To|Subject|Date|Reply-To):[^\n]*", re.IGNORECASE | re.MULTILINE),
    re.compile(r"Home\s+About\s+Blog\s+Contact", re.IGNORECASE),
    re.compile(r"Menu\s+(Home|About|Contact|Blog)", re.IGNORECASE),
    re.compile(r"(Copyright\s*©|All rights reserved|Privacy Policy|Terms of Service).*$", re.IGNORECASE | re.MULTILINE),
]
_TITLE_SUFFIX = re.compile(r"\s*([–|-]\s*CoST.*|\(Part \d+/\d+\).*)$", re.IGNORECASE)
_FIRST_SENTENCE = re.compile(r"^[^.!?]+[.!?]")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def clean_document_text(text: str | None) -> str:
    cleaned = text or ""
    for pattern in _BOILERPLATE:
        cleaned = pattern.sub("", cleaned)
    return collapse_whitespace(cleaned)


def _cut_at_word(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit]
    return cut.rsplit(" ", 1)[0] if " " in cut else cut


def first_sentence(text: str | None) -> str:
    """First sentence of the cleaned text, or its first ~180 chars on whole words."""
    cleaned = clean_document_text(text)
    match = _FIRST_SENTENCE.match(cleaned)
    if match:
        return match.group(0).strip()
    return _cut_at_word(cleaned, QUICK_EXCERPT_CHARS)


def fallback_summary(title: str, doc_type: str | None) -> str:
    """``"<verb> <title>."`` with the verb chosen by document type."""
    verb = TYPE_VERBS.get(doc_type or "", "Covers")
    clean_title = _TITLE_SUFFIX.sub("", title).strip() or title
    return f"{verb} {_cut_at_word(clean_title, 150 - len(verb)).strip()}."


def short_text_summary(title: str, doc_type: str | None) -> str:
    shown = title if len(title) <= TITLE_CHARS else title[:TITLE_CHARS] + "…"
    return f"{doc_type}: {shown}" if doc_type else shown


def clean_summary(reply: str) -> str:
    """Strip quotes, a leading dash and trailing ellipses; end on punctuation."""
    summary = collapse_whitespace(reply)
    summary = summary.strip("\"'")
    summary = re.sub(r"^-\s*", "", summary)
    summary = re.sub(r"(\.{2,}|…)$", "", summary).strip()
    if summary and summary[-1] not in ".!?":
        summary += "."
    if len(summary) > MAX_SUMMARY_CHARS:
        kept = ""
        for sentence in _SENTENCE_SPLIT.split(summary):
            candidate = f"{kept} {sentence}".strip()
            if len(candidate) > SHORTENED_SUMMARY_CHARS:
                break
            kept = candidate
        summary = kept or summary[:SHORTENED_SUMMARY_CHARS - 3].rstrip() + "..."
    return summary


class ItemSummarizer:
    """
    Writes the ``summary`` shown on each /search result.

    With ``enabled=False`` no model calls are made and every item gets
    a whitespace-collapsed excerpt instead.
    """

    def __init__(self, llm: Any, enabled: bool = True, concurrency: int = 5):
        self.llm = llm
        self.enabled = enabled
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    async def summarize(self, snippet: Snippet) -> str:
        title, doc_type = snippet.title, snippet.type
        if len((snippet.text or "").strip()) < MIN_TEXT_CHARS:
            return short_text_summary(title, doc_type)
        if not self.enabled:
            return excerpt(snippet.text, QUICK_EXCERPT_CHARS, fallback=title)

        cleaned = clean_document_text(snippet.text)
        if len(cleaned) < MIN_TEXT_CHARS:
            return fallback_summary(title, doc_type)

        try:
            async with self._semaphore:
                reply = await self.llm.complete(
                    build_summary_prompt(title, doc_type, cleaned[:PROMPT_TEXT_CHARS]),
                    system=SUMMARY_SYSTEM_PROMPT,
                    temperature=0.3,
                    max_tokens=100,
                )
        except UpstreamError as e:
            logger.warning("[SUMMARY] %s: model call failed, using excerpt: %s", snippet.source_id, e)
            sentence = first_sentence(cleaned)
            if len(sentence) > MIN_SUMMARY_CHARS:
                return _cut_at_word(sentence, SHORTENED_SUMMARY_CHARS)
            return fallback_summary(title, doc_type)

        summary = clean_summary(reply)
        if len(summary) < MIN_SUMMARY_CHARS:
            logger.debug("[SUMMARY] %s: reply too short, using fallback", snippet.source_id)
            return fallback_summary(title, doc_type)
        return summary

    async def summarize_all(self, snippets: list[Snippet]) -> list[str]:
        """One summary per snippet, in order.  Never raises."""
        return list(await asyncio.gather(*(self.summarize(s) for s in snippets)))
