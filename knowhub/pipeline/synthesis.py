"""
AnswerSynthesizer: query + ranked snippets -> cited bullet answer.

1. Drop snippets without text (no evidence, no model call)
2. Number the remaining snippets into a token-budgeted prompt
3. Parse bullet lines, map [#N] markers back to snippets
4. Keep only cites whose URL was actually handed to the model,
   and only bullets that still cite something
"""

from __future__ import annotations

import re
from typing import Callable, Protocol

from knowhub.prompts.answer import ANSWER_SYSTEM_PROMPT, build_answer_prompt, build_source_block
from knowhub.schemas.search import AnswerBullet, AnswerPayload, Citation, Snippet
from knowhub.services.llm import count_tokens
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.pipeline.synthesis")

_BULLET_PREFIXES = ("-", "•", "*")
_MARKER = re.compile(r"\[#(\d+)\]")
_MARKER_WITH_SPACE = re.compile(r"\s*\[#\d+\]")
_LEADING_BULLET = re.compile(r"^[-•*]\s*")


class CompletionClient(Protocol):
    async def complete(self, prompt: str, *, system: str | None = None,
                       temperature: float = 0.3, max_tokens: int = 800) -> str: ...


def parse_bullets(text: str, sources: list[Snippet]) -> list[AnswerBullet]:
    """Turn model output into bullets with cites resolved against ``sources``."""
    allowed_urls = {s.url for s in sources}
    bullets: list[AnswerBullet] = []

    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line.startswith(_BULLET_PREFIXES):
            continue

        cites: list[Citation] = []
        seen: set[str] = set()
        for match in _MARKER.finditer(line):
            index = int(match.group(1)) - 1
            if not 0 <= index < len(sources):
                continue
            source = sources[index]
            if source.url not in allowed_urls or source.url in seen:
                continue
            seen.add(source.url)
            cites.append(Citation(title=source.title, url=source.url))

        clean = _LEADING_BULLET.sub("", _MARKER_WITH_SPACE.sub("", line)).strip()
        if cites and clean:
            bullets.append(AnswerBullet(text=clean, cites=cites))

    return bullets


class AnswerSynthesizer:
    def __init__(
        self,
        llm: CompletionClient,
        excerpt_chars: int = 1200,
        context_tokens: int = 6000,
        token_counter: Callable[[str], int] = count_tokens,
    ):
        self.llm = llm
        self.token_counter = token_counter
        self.excerpt_chars = excerpt_chars
        self.context_tokens = context_tokens

    def _budgeted_sources(self, snippets: list[Snippet]) -> tuple[list[Snippet], list[str]]:
        sources: list[Snippet] = []
        blocks: list[str] = []
        used = 0
        for snippet in snippets:
            block = build_source_block(
                len(sources) + 1,
                snippet.title,
                snippet.url,
                snippet.text[: self.excerpt_chars],
            )
            cost = self.token_counter(block)
            if sources and used + cost > self.context_tokens:
                break
            sources.append(snippet)
            blocks.append(block)
            used += cost
        return sources, blocks

    async def synthesize(self, query: str, snippets: list[Snippet]) -> AnswerPayload:
        """
        Raises UpstreamError when the model call fails; an empty payload
        means there was nothing to cite.
        """
        usable = [s for s in snippets if s.has_text]
        if not usable:
            logger.info("[SYNTH] No snippet text to cite, returning empty answer")
            return AnswerPayload()

        sources, blocks = self._budgeted_sources(usable)
        prompt = build_answer_prompt(query, blocks)
        text = await self.llm.complete(prompt, system=ANSWER_SYSTEM_PROMPT, temperature=0.2)

        bullets = parse_bullets(text, sources)
        logger.info(
            "[SYNTH] %d bullets from %d sources (%d snippets dropped for empty text)",
            len(bullets),
            len(sources),
            len(snippets) - len(usable),
        )
        return AnswerPayload(answer=bullets)
