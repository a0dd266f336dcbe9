from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_TEXT_MODELS = "gpt2,distilgpt2,EleutherAI/gpt-neo-125M"
_DEFAULT_TEXT2TEXT_MODELS = "google/flan-t5-base,google/flan-t5-small"


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _csv(raw: str) -> list[str]:
    return [value.strip() for value in raw.split(",") if value.strip()]


@dataclass(frozen=True)
class Settings:
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    metrics_enabled: bool = _flag("RAG_METRICS_ENABLED", "true")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "huggingface")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "384"))
    embedding_timeout: float = float(os.getenv("EMBEDDING_TIMEOUT", "30"))
    hf_token: str | None = os.getenv("HF_TOKEN")
    hf_inference_url: str = os.getenv(
        "HF_INFERENCE_URL", "https://router.huggingface.co/hf-inference"
    )
    hf_embedding_model: str = os.getenv("HF_EMBEDDING_MODEL", "BAAI/bge-small-en-v1.5")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_embedding_model: str = os.getenv("OLLAMA_EMBEDDING_MODEL", "nomic-embed-text")
    vectorstore_backend: str = os.getenv("RAG_VECTORSTORE", "memory")
    top_k: int = int(os.getenv("RAG_TOP_K", "10"))
    astra_api_endpoint: str | None = os.getenv("ASTRA_DB_API_ENDPOINT")
    astra_token: str | None = os.getenv("ASTRA_DB_APPLICATION_TOKEN")
    astra_keyspace: str = os.getenv("ASTRA_DB_NAMESPACE", "default_keyspace")
    astra_collection: str | None = os.getenv("ASTRA_DB_COLLECTION")
    astra_timeout: float = float(os.getenv("ASTRA_DB_TIMEOUT", "15"))
    milvus_uri: str = os.getenv("MILVUS_URI", "http://localhost:19530")
    milvus_token: str | None = os.getenv("MILVUS_TOKEN")
    milvus_collection: str = os.getenv("MILVUS_COLLECTION", "f1_documents")
    milvus_metric_type: str = os.getenv("MILVUS_METRIC_TYPE", "COSINE")
    milvus_nprobe: int = int(os.getenv("MILVUS_NPROBE", "10"))
    milvus_text_field: str = os.getenv("MILVUS_TEXT_FIELD", "text")
    milvus_vector_field: str = os.getenv("MILVUS_VECTOR_FIELD", "embedding")
    groq_api_key: str | None = os.getenv("GROQ_API_KEY")
    primary_base_url: str = os.getenv("PRIMARY_BASE_URL", "https://api.groq.com/openai/v1")
    primary_model: str = os.getenv("PRIMARY_MODEL", "llama-3.3-70b-versatile")
    primary_temperature: float = float(os.getenv("PRIMARY_TEMPERATURE", "0.7"))
    primary_max_tokens: int = int(os.getenv("PRIMARY_MAX_TOKENS", "1024"))
    primary_stream: bool = _flag("PRIMARY_STREAM", "false")
    primary_timeout: float = float(os.getenv("PRIMARY_TIMEOUT", "60"))
    fallback_enabled: bool = _flag("RAG_FALLBACK_ENABLED", "true")
    fallback_text_models_raw: str = os.getenv("FALLBACK_TEXT_MODELS", _DEFAULT_TEXT_MODELS)
    fallback_text2text_models_raw: str = os.getenv(
        "FALLBACK_TEXT2TEXT_MODELS", _DEFAULT_TEXT2TEXT_MODELS
    )
    fallback_max_new_tokens: int = int(os.getenv("FALLBACK_MAX_NEW_TOKENS", "256"))
    fallback_timeout: float = float(os.getenv("FALLBACK_TIMEOUT", "60"))
    stream_chunk_size: int = int(os.getenv("RAG_STREAM_CHUNK_SIZE", "40"))

    @property
    def fallback_text_models(self) -> list[str]:
        return _csv(os.getenv("FALLBACK_TEXT_MODELS", self.fallback_text_models_raw))

    @property
    def fallback_text2text_models(self) -> list[str]:
        return _csv(os.getenv("FALLBACK_TEXT2TEXT_MODELS", self.fallback_text2text_models_raw))


settings = Settings()
