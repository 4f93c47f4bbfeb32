"""
HomeMatch Property Search Engine

Semantic property search, requirement matching and embedding indexing.

Modules:
    normalizer  — Record shape adapter, embedding texts, payload text walker
    filters     — Search filters, property type taxonomy, lead text parsing
    embeddings  — OpenAI embedding API calls
    search      — Vector similarity search with fallback escalation
    fallback    — Structured filter + keyword search
    matcher     — Must-have / nice-to-have composite scoring
    indexer     — Build embeddings from records, persist to DB
    service     — Caller-facing PropertyMatchingService
    tasks       — Celery tasks for background indexing
"""
