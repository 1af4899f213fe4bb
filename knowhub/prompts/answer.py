"""
Prompt templates for the /search path: cited answer synthesis and
per-result summaries.
"""

from __future__ import annotations

ANSWER_SYSTEM_PROMPT = (
    "You are a research assistant for a public knowledge portal. "
    "You only state what the provided excerpts support and you cite every claim."
)


def build_source_block(number: int, title: str, url: str, text: str) -> str:
    return f"[#{number}] {title}\nURL: {url}\nEXCERPT:\n{text}\n"


def build_answer_prompt(query: str, source_blocks: list[str]) -> str:
    sources = "\n".join(source_blocks)
    return (
        "You answer in 3-6 short bullets. Every bullet MUST cite one or more "
        "sources using [#N] where N is from the bracketed list.\n"
        "Only use the provided excerpts. If unsure, say you don't have evidence.\n\n"
        f"Question: {query}\n\n"
        f"Sources:\n{sources}"
    )


SUMMARY_SYSTEM_PROMPT = (
    "You are a research assistant helping infrastructure transparency researchers "
    "decide which documents to open."
)


def build_summary_prompt(title: str, doc_type: str | None, text: str) -> str:
    return f"""Write ONE complete sentence (20-30 words) that captures what this document offers.

RULES:
- Start with an action verb: Explains/Provides/Outlines/Details/Describes
- Focus on practical value and key content
- Complete sentence, no truncation and no "..."
- No metadata, navigation text or emails
- Be specific and helpful

Document Title: {title}
Type: {doc_type or "Document"}
Content: {text}"""
