"""
Prompt templates for the navigation features.

Quick topics and starter questions are global and built from a corpus
sample; insight clusters and intent analysis are per query.
"""

from __future__ import annotations

import json

from knowhub.schemas.search import Snippet

CATEGORY_ICONS = (
    "🏗️ Standards, 📊 Impact/Data, 🔍 Transparency, "
    "✅ Assurance, 🌍 Countries/Regions, 📈 Implementation"
)

FEATURE_SYSTEM_PROMPT = (
    "You help readers navigate a knowledge hub about infrastructure transparency. "
    "You respond with JSON only."
)


def format_corpus_sample(documents: list[Snippet]) -> str:
    lines = [f"- {d.title} ({d.type or 'Document'})" for d in documents]
    return "\n".join(lines) or "- (no documents indexed yet)"


def build_quick_topics_prompt(documents: list[Snippet]) -> str:
    return f"""You are creating quick topic shortcuts for a knowledge hub about infrastructure transparency.

Sample content:
{format_corpus_sample(documents)}

Generate 6 QUICK TOPIC SHORTCUTS that:
1. Are SHORT LABELS (2-5 words maximum)
2. ARE NOT QUESTIONS, they are topic labels
3. Start with the key concept or topic
4. Reflect actual content in the knowledge base
5. Cover these categories: Standards, Impact, Transparency, Assurance, Countries, Implementation

Return ONLY a JSON array:
[
  {{"icon": "🏗️", "topic": "Short topic label here", "category": "Category"}}
]

Emojis to use:
{CATEGORY_ICONS}

Good: "OC4IDS standard", "Impact stories", "Assurance processes"
Bad: "What is the OC4IDS standard for infrastructure?\""""


def build_starter_questions_prompt(documents: list[Snippet]) -> str:
    return f"""You are analyzing a knowledge hub about infrastructure transparency.

Sample content:
{format_corpus_sample(documents)}

Generate 6 SHORT starter questions that:
1. Are 3-8 words maximum
2. Start with action words or key topics
3. Reflect actual content in the knowledge base
4. Cover: standards, impact, transparency, assurance, countries, implementation

Return ONLY a JSON array:
[
  {{"icon": "🏗️", "question": "Short label here (3-8 words)", "category": "Category"}}
]

Emojis:
{CATEGORY_ICONS}"""


def build_insight_clusters_prompt(documents: list[Snippet]) -> str:
    summaries = "\n\n".join(
        f"• {d.title} ({d.type or 'Document'}, {d.year or 'n.d.'})\n  {d.text[:200]}..."
        for d in documents
    )
    example = [
        {
            "theme": "Shift from compliance to impact measurement",
            "documents": ["Doc Title 1", "Doc Title 2", "Doc Title 3"],
            "keyInsight": "Guidance moved from disclosure requirements to measuring real-world impact",
            "actionable": "Prioritise impact metrics over publishing data alone",
            "novelty": 0.85,
        }
    ]
    return f"""Analyze these {len(documents)} documents about infrastructure transparency:

{summaries}

Identify 2-4 EMERGENT THEMES that connect several of these documents.
Use the document titles exactly as written above.

Respond ONLY with a valid JSON array:
{json.dumps(example, indent=2)}"""


def build_intent_prompt(query: str) -> str:
    example = {
        "category": "research",
        "expandedQuery": "comprehensive transparency guidelines for infrastructure procurement",
        "implicitNeeds": ["implementation examples", "common pitfalls to avoid"],
        "suggestedFilters": {"type": "Guide", "yearFrom": 2023, "includeHistorical": False},
        "relatedTopics": ["disclosure requirements", "assurance processes"],
        "confidence": 0.85,
    }
    return f"""Analyze this user query: "{query}"

Predict:
1. Their real intent (research/guidance/examples/comparison/latest-updates/historical/implementation)
2. A more comprehensive version of the query
3. What they implicitly need but did not ask for
4. Whether to filter by content type (Manual/Guide/News/Blog Post)
5. Whether they want recent or historical material
6. Related topics worth showing

Respond ONLY with valid JSON:
{json.dumps(example, indent=2)}"""
