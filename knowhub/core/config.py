from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Knowledge Hub API"
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 8000
    # Comma-separated list of origins allowed by CORS
    allowed_origins: str = "http://localhost:4200"

    # OpenAI settings (answer synthesis, feature generators, optional embeddings)
    openai_api_key: str | None = None
    chat_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 30.0

    # Embedding settings
    embedding_provider: str = "sentence-transformers"  # or "openai"
    embedding_model: str = "all-MiniLM-L6-v2"
    openai_embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int = 1536  # Only used by the openai provider

    # ChromaDB settings
    chromadb_persist_directory: str | None = None  # Auto-detected if None
    chroma_collection: str = "docs"

    # Search pagination
    search_default_limit: int = 10
    search_max_limit: int = 50

    # Per-result summaries on /search (model-written when enabled)
    search_ai_summaries: bool = True
    summary_concurrency: int = 5

    # Query cache (full /search responses)
    cache_ttl_seconds: float = 60.0
    cache_max_size: int = 500

    # Fixed-window rate limiting per client IP
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 60

    # Quick topics / starter questions
    feature_cache_ttl_seconds: float = 6 * 60 * 60  # 6 hours
    feature_retry_attempts: int = 3
    feature_retry_base_delay: float = 1.0

    # Answer synthesis prompt budget
    synthesis_excerpt_chars: int = 1200
    synthesis_context_tokens: int = 6000

    # Contextual telemetry
    telemetry_log_path: str = "logs/contextual-telemetry.ndjson"
    telemetry_webhook_url: str | None = None
    telemetry_forward_timeout_seconds: float = 2.0

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables that aren't in the Settings class

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


settings = Settings()
