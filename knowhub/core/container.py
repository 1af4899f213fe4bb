"""
Service container: every shared object the routes need, built once at
start-up and stored on ``app.state.services``.

Routes get it through the ``get_services`` dependency; tests build a
container from fakes and hand it to ``create_app``.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from knowhub.core.config import Settings
from knowhub.features.cache import FeatureCache
from knowhub.features.contextual_filters import ContextualFiltersGenerator
from knowhub.features.quick_topics import QuickTopicsGenerator
from knowhub.features.smart_collections import SmartCollectionsGenerator
from knowhub.features.starter_questions import StarterQuestionsGenerator
from knowhub.pipeline.cache import QueryCache
from knowhub.pipeline.orchestrator import SearchService
from knowhub.pipeline.summaries import ItemSummarizer
from knowhub.pipeline.synthesis import AnswerSynthesizer
from knowhub.services.rate_limiter import FixedWindowRateLimiter
from knowhub.services.telemetry import TelemetryRecorder
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.core.container")


@dataclass
class ServiceContainer:
    search: SearchService
    rate_limiter: FixedWindowRateLimiter
    quick_topics: QuickTopicsGenerator
    starter_questions: StarterQuestionsGenerator
    smart_collections: SmartCollectionsGenerator
    contextual_filters: ContextualFiltersGenerator
    telemetry: TelemetryRecorder

    @property
    def cache(self) -> QueryCache:
        return self.search.cache

    async def shutdown(self) -> None:
        await self.search.wait_inflight()
        await self.telemetry.drain()
        logger.info("Query cache stats at shutdown: %s", self.cache.stats())


def assemble_services(
    config: Settings,
    *,
    embedder,
    retriever,
    llm,
    synthesizer: AnswerSynthesizer | None = None,
) -> ServiceContainer:
    """Wire the container around already-constructed providers."""
    synthesizer = synthesizer or AnswerSynthesizer(
        llm,
        excerpt_chars=config.synthesis_excerpt_chars,
        context_tokens=config.synthesis_context_tokens,
    )
    return ServiceContainer(
        search=SearchService(
            embedder=embedder,
            retriever=retriever,
            synthesizer=synthesizer,
            summarizer=ItemSummarizer(
                llm,
                enabled=config.search_ai_summaries,
                concurrency=config.summary_concurrency,
            ),
            cache=QueryCache(config.cache_ttl_seconds, config.cache_max_size),
        ),
        rate_limiter=FixedWindowRateLimiter(
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
        ),
        quick_topics=QuickTopicsGenerator(
            retriever,
            llm,
            FeatureCache(config.feature_cache_ttl_seconds),
            retry_attempts=config.feature_retry_attempts,
            retry_base_delay=config.feature_retry_base_delay,
        ),
        starter_questions=StarterQuestionsGenerator(
            retriever,
            llm,
            FeatureCache(config.feature_cache_ttl_seconds),
            retry_attempts=config.feature_retry_attempts,
            retry_base_delay=config.feature_retry_base_delay,
        ),
        smart_collections=SmartCollectionsGenerator(embedder, retriever, llm),
        contextual_filters=ContextualFiltersGenerator(embedder, retriever, llm),
        telemetry=TelemetryRecorder(
            config.telemetry_log_path,
            webhook_url=config.telemetry_webhook_url,
            forward_timeout=config.telemetry_forward_timeout_seconds,
        ),
    )


def build_services(config: Settings) -> ServiceContainer:
    """Production wiring: sentence-transformers/OpenAI, ChromaDB, OpenAI chat."""
    from knowhub.services.embedding import Embedder
    from knowhub.services.llm import LLMClient
    from knowhub.services.vector_store import Retriever, open_collection

    logger.info(
        "Building services | embeddings=%s | chat=%s | collection=%s",
        config.embedding_provider,
        config.chat_model,
        config.chroma_collection,
    )
    return assemble_services(
        config,
        embedder=Embedder(config),
        retriever=Retriever(open_collection(config)),
        llm=LLMClient(config),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
