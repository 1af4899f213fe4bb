"""
Quick topics: short (≤5 word) navigation labels, refreshed every few hours.
"""

from __future__ import annotations

from knowhub.features.base import CorpusFeatureGenerator
from knowhub.prompts.features import build_quick_topics_prompt
from knowhub.schemas.features import QuickTopic
from knowhub.schemas.search import Snippet

FALLBACK_TOPICS = (
    ("🏗️", "OC4IDS standard", "Standards"),
    ("📊", "Impact stories", "Impact"),
    ("🔍", "Infrastructure transparency", "Transparency"),
    ("✅", "Assurance processes", "Assurance"),
    ("🌍", "Country programmes", "Countries"),
    ("📈", "Project disclosure", "Implementation"),
)


class QuickTopicsGenerator(CorpusFeatureGenerator[QuickTopic]):
    name = "quick_topics"
    item_model = QuickTopic
    text_field = "topic"
    max_words = 5

    def build_prompt(self, documents: list[Snippet]) -> str:
        return build_quick_topics_prompt(documents)

    def fallback(self) -> list[QuickTopic]:
        return [QuickTopic(icon=i, topic=t, category=c) for i, t, c in FALLBACK_TOPICS]
