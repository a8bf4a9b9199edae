# src/config/settings.py
from pydantic_settings import BaseSettings
from pathlib import Path

# Get project root (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str
    openai_llm_model: str = "gpt-4o-mini"

    # PostgreSQL feedback store
    postgres_host: str
    postgres_port: int = 5432
    postgres_database: str
    postgres_username: str
    postgres_password: str
    postgres_sslmode: str = "prefer"

    # Pipeline config
    batch_size: int = 100
    max_workers: int = 5
    enrichment_chunk_size: int = 5
    enrichment_chunk_delay: float = 0.1

    # Search config
    intent_strategy: str = "keyword"

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        case_sensitive = False
