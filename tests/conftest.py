"""
Pytest configuration for the knowledge hub test suite.

Configures:
- pytest-asyncio for async test support
- in-memory fakes for the embedding model, ChromaDB collection and LLM
- an app wired to those fakes through the ServiceContainer
"""

import json
import math

import pytest
from fastapi.testclient import TestClient

from knowhub.core.config import Settings
from knowhub.core.container import assemble_services
from knowhub.core.errors import UpstreamError
from knowhub.main import create_app
from knowhub.pipeline.synthesis import AnswerSynthesizer
from knowhub.services.vector_store import Retriever

pytest_plugins = ["pytest_asyncio"]


QUERY_VECTOR = [1.0, 0.0, 0.0]

CORPUS = [
    {
        "id": "doc-1",
        "embedding": [1.0, 0.0, 0.0],
        "document": "The Open Contracting for Infrastructure Data Standard (OC4IDS) "
                    "sets out what to disclose about public infrastructure projects.",
        "metadata": {"title": "OC4IDS Overview", "url": "https://hub.example/oc4ids",
                     "type": "Guide", "country": "Uganda", "year": 2021},
    },
    {
        "id": "doc-2",
        "embedding": [0.9, 0.1, 0.0],
        "document": "This field guide walks implementers through publishing OC4IDS data.",
        "metadata": {"title": "OC4IDS Field Guide", "url": "https://hub.example/field-guide",
                     "type": "Manual", "country": "Honduras", "year": 2023},
    },
    {
        "id": "doc-3",
        "embedding": [0.7, 0.3, 0.0],
        "document": "Disclosure rates rose once procuring entities adopted the standard.",
        "metadata": {"title": "Disclosure in Practice", "url": "https://hub.example/disclosure",
                     "type": "Guide", "country": "Uganda", "year": 2019},
    },
    {
        "id": "doc-4",
        "embedding": [0.5, 0.5, 0.0],
        "document": "Assurance teams review disclosed data for accuracy and completeness.",
        "metadata": {"title": "Assurance Handbook", "url": "https://hub.example/assurance",
                     "type": "Manual", "country": "Malawi", "year": 2022},
    },
    {
        "id": "doc-5",
        "embedding": [0.2, 0.8, 0.0],
        "document": "",
        "metadata": {"title": "Impact Stories", "url": "https://hub.example/impact",
                     "type": "News", "year": 2020},
    },
]


def _cosine_distance(a, b):
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return 1.0 - (dot / norm if norm else 0.0)


def _where_matches(metadata, where):
    if where is None:
        return True
    if "$and" in where:
        return all(_where_matches(metadata, clause) for clause in where["$and"])
    return all(metadata.get(key) == value for key, value in where.items())


class FakeCollection:
    """Duck-typed stand-in for a chromadb Collection."""

    def __init__(self, records=None, fail=False):
        self.records = list(CORPUS if records is None else records)
        self.fail = fail
        self.query_calls = []
        self.get_calls = 0

    def query(self, query_embeddings, n_results, include, where=None):
        self.query_calls.append({"n_results": n_results, "where": where})
        if self.fail:
            raise RuntimeError("index unavailable")
        vector = query_embeddings[0]
        hits = [r for r in self.records if _where_matches(r["metadata"], where)]
        hits = sorted(hits, key=lambda r: _cosine_distance(vector, r["embedding"]))[:n_results]
        return {
            "ids": [[r["id"] for r in hits]],
            "documents": [[r["document"] for r in hits]],
            "metadatas": [[r["metadata"] for r in hits]],
            "distances": [[_cosine_distance(vector, r["embedding"]) for r in hits]],
        }

    def get(self, limit=None, include=None):
        self.get_calls += 1
        if self.fail:
            raise RuntimeError("index unavailable")
        records = self.records[:limit]
        return {
            "ids": [r["id"] for r in records],
            "documents": [r["document"] for r in records],
            "metadatas": [r["metadata"] for r in records],
        }


class FakeEmbedder:
    def __init__(self, vector=None, fail=False):
        self.vector = vector or QUERY_VECTOR
        self.fail = fail
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.fail:
            raise UpstreamError("embedding", "model offline")
        return list(self.vector)


ANSWER_REPLY = "\n".join([
    "Here is what the sources say:",
    "- OC4IDS is an open data standard for infrastructure disclosure [#1] [#2]",
    "• Procuring entities that adopt it disclose more [#3]",
    "- A claim with no evidence at all",
    "* A claim citing a source that was never provided [#9]",
])

QUICK_TOPICS_REPLY = json.dumps([
    {"icon": "🏗️", "topic": "OC4IDS standard", "category": "Standards"},
    {"icon": "📊", "topic": "Impact stories", "category": "Impact"},
    {"icon": "🔍", "topic": "Infrastructure transparency in practice across many regions", "category": "Transparency"},
    {"icon": "✅", "topic": "Assurance processes", "category": "Assurance"},
    {"icon": "🌍", "topic": "Country programmes", "category": "Countries"},
])

STARTER_QUESTIONS_REPLY = "```json\n" + json.dumps([
    {"icon": "🏗️", "question": "What is OC4IDS?", "category": "Standards"},
    {"icon": "📊", "question": "Latest impact stories", "category": "Impact"},
    {"icon": "✅", "question": "How do assurance teams review disclosed project data in practice today?", "category": "Assurance"},
    {"icon": "🌍", "question": "Country implementation examples", "category": "Countries"},
]) + "\n```"

CLUSTERS_REPLY = json.dumps([
    {
        "theme": "STANDARD ADOPTION across countries",
        "documents": ["OC4IDS Overview", "OC4IDS Field Guide", "Not A Real Title"],
        "keyInsight": "Adoption of the standard spread from pilots to national systems.",
        "actionable": "Start with the field guide.",
        "novelty": 0.8,
    },
    {
        "theme": "Orphan theme",
        "documents": ["Nothing matches this"],
        "keyInsight": "Should be skipped.",
        "novelty": 0.1,
    },
])

SUMMARY_REPLY = (
    "\"Explains how the OC4IDS standard guides disclosure of public "
    "infrastructure project data across the project cycle...\""
)

INTENT_REPLY = json.dumps({
    "category": "guidance",
    "expandedQuery": "OC4IDS infrastructure data standard guidance",
    "implicitNeeds": ["Implementation Examples"],
    "suggestedFilters": {"type": ["Guide"], "includeHistorical": True},
    "relatedTopics": ["assurance"],
    "confidence": 0.85,
})


class FakeLLM:
    """
    Routes prompts to canned replies by their headline.
    Set ``fail_on`` to a kind ("answer", "topics", ...) to raise UpstreamError.
    """

    def __init__(self, replies=None, fail_on=()):
        self.replies = {
            "answer": ANSWER_REPLY,
            "topics": QUICK_TOPICS_REPLY,
            "questions": STARTER_QUESTIONS_REPLY,
            "clusters": CLUSTERS_REPLY,
            "intent": INTENT_REPLY,
            "summary": SUMMARY_REPLY,
        }
        self.replies.update(replies or {})
        self.fail_on = set(fail_on)
        self.calls = []

    @staticmethod
    def kind_of(prompt):
        if "QUICK TOPIC SHORTCUTS" in prompt:
            return "topics"
        if "starter questions" in prompt:
            return "questions"
        if "EMERGENT THEMES" in prompt:
            return "clusters"
        if "Analyze this user query" in prompt:
            return "intent"
        if "Write ONE complete sentence" in prompt:
            return "summary"
        return "answer"

    async def complete(self, prompt, *, system=None, temperature=0.3, max_tokens=800):
        kind = self.kind_of(prompt)
        self.calls.append(kind)
        if kind in self.fail_on:
            raise UpstreamError("llm", f"{kind} generation failed")
        return self.replies[kind]

    def count(self, kind):
        return self.calls.count(kind)


def word_count(text):
    return len(text.split())


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        app_name="Knowledge Hub API (test)",
        environment="test",
        openai_api_key=None,
        rate_limit_max_requests=5,
        rate_limit_window_seconds=60,
        feature_retry_attempts=2,
        feature_retry_base_delay=0.0,
        telemetry_log_path=str(tmp_path / "logs" / "contextual-telemetry.ndjson"),
        telemetry_webhook_url=None,
    )


@pytest.fixture
def fake_collection():
    return FakeCollection()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def retriever(fake_collection):
    return Retriever(fake_collection)


@pytest.fixture
def services(test_settings, fake_embedder, retriever, fake_llm):
    return assemble_services(
        test_settings,
        embedder=fake_embedder,
        retriever=retriever,
        llm=fake_llm,
        synthesizer=AnswerSynthesizer(fake_llm, token_counter=word_count),
    )


@pytest.fixture
def app(test_settings, services):
    return create_app(settings=test_settings, services=services)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
