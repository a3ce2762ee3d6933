from typing import List, Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.errors import ConfigurationError


class Settings(BaseSettings):
    # Content retrieval (Exa)
    exa_api_key: SecretStr = SecretStr("")
    exa_base_url: str = "https://api.exa.ai"
    support_url: str = "https://www.aven.com/support"

    # Vector store (Pinecone, integrated embeddings)
    pinecone_api_key: SecretStr = SecretStr("")
    pinecone_control_url: str = "https://api.pinecone.io"
    pinecone_api_version: str = "2025-01"
    pinecone_index_name: str = "aven-support"
    pinecone_namespace: str = "default"
    pinecone_cloud: Literal["aws", "gcp", "azure"] = "aws"
    pinecone_region: str = "us-east-1"
    embedding_model: str = "llama-text-embed-v2"
    embedding_text_field: str = "chunk_text"
    rerank_model: str = "bge-reranker-v2-m3"

    # LLM completion (OpenAI-compatible)
    openai_api_key: SecretStr = SecretStr("")
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 1000

    # Retrieval-augmented answering
    context_top_k: int = 5
    max_context_chars: int = 4000
    company_name: str = "Aven"

    # Ingestion
    data_dir: str = "./data"
    scrape_max_retries: int = 3
    snapshot_failure_policy: Literal["continue", "fail"] = "continue"
    upsert_batch_size: int = 96
    upsert_batch_delay: float = 0.1
    upsert_max_attempts: int = 3

    http_timeout: float = 60.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    def missing_secrets(self) -> List[str]:
        """Names of the required API keys that are unset."""
        required = {
            "EXA_API_KEY": self.exa_api_key,
            "PINECONE_API_KEY": self.pinecone_api_key,
            "OPENAI_API_KEY": self.openai_api_key,
        }
        return [name for name, value in required.items() if not value.get_secret_value()]

    def validate_required(self) -> None:
        missing = self.missing_secrets()
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}"
            )


settings = Settings()
