"""
Derived navigation features.

Global, TTL-cached:   quick_topics.py, starter_questions.py  (base.py, cache.py)
Per query, uncached:  smart_collections.py, contextual_filters.py
"""
