from __future__ import annotations

from knowhub.features.base import CorpusFeatureGenerator
from knowhub.prompts.features import build_starter_questions_prompt
from knowhub.schemas.features import StarterQuestion
from knowhub.schemas.search import Snippet

FALLBACK_QUESTIONS = (
    ("🏗️", "OC4IDS standard", "Standards"),
    ("📊", "Latest impact stories", "Impact"),
    ("🔍", "Infrastructure transparency guidelines", "Transparency"),
    ("✅", "Assurance processes", "Assurance"),
    ("🌍", "Country implementation examples", "Countries"),
    ("📈", "Project disclosure standards", "Implementation"),
)


class StarterQuestionsGenerator(CorpusFeatureGenerator[StarterQuestion]):
    """Conversation starters (≤8 words) for the empty search page."""

    name = "starter_questions"
    item_model = StarterQuestion
    text_field = "question"
    max_words = 8

    def build_prompt(self, documents: list[Snippet]) -> str:
        return build_starter_questions_prompt(documents)

    def fallback(self) -> list[StarterQuestion]:
        return [StarterQuestion(icon=i, question=q, category=c) for i, q, c in FALLBACK_QUESTIONS]
