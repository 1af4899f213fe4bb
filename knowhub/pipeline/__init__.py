"""
The /search request pipeline.

Cache:       cache.py         (QueryCache, build_cache_key)
Synthesis:   synthesis.py     (AnswerSynthesizer)

Orchestrated by: orchestrator.py (SearchService)
"""
