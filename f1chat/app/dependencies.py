from __future__ import annotations

from functools import lru_cache

from f1chat.app.settings import settings
from f1chat.rag.embeddings import (
    EmbeddingClient,
    EmbeddingConfigError,
    EmbeddingProvider,
    HashEmbedder,
    HuggingFaceEmbedder,
    OllamaEmbedder,
)
from f1chat.rag.fallback import FallbackChain
from f1chat.rag.llm import HuggingFaceTextProvider, OpenAIChatProvider
from f1chat.rag.pipeline import ChatPipeline
from f1chat.rag.retriever import ContextRetriever
from f1chat.vectorstore.astra import AstraConfig, AstraVectorStore
from f1chat.vectorstore.base import VectorStore, VectorStoreError
from f1chat.vectorstore.inmemory import InMemoryVectorStore
from f1chat.vectorstore.milvus import MilvusConfig, MilvusVectorStore


@lru_cache
def get_pipeline() -> ChatPipeline:
    return ChatPipeline(
        embedder=EmbeddingClient(provider=build_embedder()),
        retriever=ContextRetriever(vectorstore=get_vectorstore(), top_k=settings.top_k),
        generator=build_fallback_chain(),
        chunk_size=settings.stream_chunk_size,
    )


@lru_cache
def get_vectorstore() -> VectorStore:
    return build_vectorstore()


def reset_pipeline_cache() -> None:
    get_pipeline.cache_clear()
    get_vectorstore.cache_clear()


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider in {"huggingface", "hf"}:
        return HuggingFaceEmbedder(
            base_url=settings.hf_inference_url,
            model=settings.hf_embedding_model,
            token=settings.hf_token,
            timeout=settings.embedding_timeout,
        )
    if provider == "ollama":
        return OllamaEmbedder(
            base_url=settings.ollama_base_url,
            model=settings.ollama_embedding_model,
            timeout=settings.embedding_timeout,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def build_vectorstore() -> VectorStore:
    backend = settings.vectorstore_backend.lower().strip()
    if backend == "astra":
        config = AstraConfig(
            api_endpoint=settings.astra_api_endpoint or "",
            token=settings.astra_token or "",
            keyspace=settings.astra_keyspace,
            collection=settings.astra_collection or "",
            timeout=settings.astra_timeout,
        )
        return AstraVectorStore(config=config)
    if backend == "milvus":
        config = MilvusConfig(
            uri=settings.milvus_uri,
            token=settings.milvus_token,
            collection=settings.milvus_collection,
            metric_type=settings.milvus_metric_type,
            nprobe=settings.milvus_nprobe,
            text_field=settings.milvus_text_field,
            vector_field=settings.milvus_vector_field,
        )
        return MilvusVectorStore(config=config)
    if backend == "memory":
        return InMemoryVectorStore()
    raise VectorStoreError(f"Unsupported vector store backend: {backend}")


def build_fallback_chain() -> FallbackChain:
    primary = None
    if settings.groq_api_key:
        primary = OpenAIChatProvider(
            api_key=settings.groq_api_key,
            base_url=settings.primary_base_url,
            model=settings.primary_model,
            temperature=settings.primary_temperature,
            max_tokens=settings.primary_max_tokens,
            timeout=settings.primary_timeout,
        )
    secondary = None
    if settings.fallback_enabled:
        secondary = HuggingFaceTextProvider(
            base_url=settings.hf_inference_url,
            token=settings.hf_token,
            max_new_tokens=settings.fallback_max_new_tokens,
            timeout=settings.fallback_timeout,
        )
    return FallbackChain(
        primary=primary,
        secondary=secondary,
        text_models=tuple(settings.fallback_text_models),
        text2text_models=tuple(settings.fallback_text2text_models),
        primary_stream=settings.primary_stream,
        chunk_size=settings.stream_chunk_size,
    )
