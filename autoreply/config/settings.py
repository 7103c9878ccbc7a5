"""Application settings loaded from environment variables via pydantic-settings.

Values come from two sources, environment variables first and then the
project-root ``.env`` file; the field ``openai_api_key`` maps to
``OPENAI_API_KEY``.  Defaults apply when neither source sets a field.

Secrets (API keys, the webhook verify token) belong in ``.env`` or the
deployment environment, never in ``config/config.yaml``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """autoreply application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Storage ===
    database_path: str = "data/autoreply.db"

    # === OpenAI (embeddings + reply generation) ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, etc.)
    openai_embedding_model: str = ""  # default text-embedding-3-small
    openai_reply_model: str = ""  # default gpt-4o-mini

    # === Platform (Graph API) ===
    graph_api_base_url: str = "https://graph.facebook.com/v21.0"
    webhook_verify_token: str = ""

    # === Chunking ===
    # chunk_unit is "characters" or "words"; fixed per deployment.
    chunk_size: int = 1200
    chunk_overlap: int = 100
    chunk_unit: str = "characters"

    # === Retrieval ===
    reply_top_k: int = 5
    search_default_top_n: int = 5
    # Candidate window: only the most recent N chunks of an owner are ranked.
    retrieval_candidate_window: int = 500

    # === Reply pipeline ===
    embedding_timeout_seconds: float = 10.0
    generation_timeout_seconds: float = 20.0
    delivery_timeout_seconds: float = 10.0
    reply_max_workers: int = 4
    fallback_reply_text: str = (
        "Thanks for reaching out! We've received your message and will get back to you shortly."
    )

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_providers(self) -> list[str]:
        """Return the names of external services that have credentials configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.webhook_verify_token:
            providers.append("graph_api_webhook")
        return providers
