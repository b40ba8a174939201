"""
Embedding Factory for Multi-Provider Support

Instantiates the appropriate LangChain embeddings client based on a model
identifier, and wraps it as an EmbeddingPort.
Supports: OpenAI, Azure OpenAI, Ollama, Google Gemini, HuggingFace and a
deterministic fake for local development and tests.
"""

import logging
import os
from typing import Any

from llm_router.embedding.adapter import LangChainEmbeddingAdapter
from llm_router.embedding.ports import EmbeddingPort

logger = logging.getLogger(__name__)


def create_embeddings(model: str = "fake/384", **kwargs: Any) -> Any:
    """
    Create a LangChain Embeddings instance based on the model identifier.

    Model format examples:
    - OpenAI: "text-embedding-3-small", "openai/text-embedding-3-large"
    - Azure OpenAI: "azure/my-embedding-deployment"
    - Ollama: "ollama/nomic-embed-text"
    - Google Gemini: "gemini/text-embedding-004"
    - HuggingFace: "huggingface/sentence-transformers/all-MiniLM-L6-v2"
    - Fake: "fake/384" (deterministic hash-seeded vectors of size 384)

    Environment variables required:
    - OpenAI: OPENAI_API_KEY
    - Azure OpenAI: AZURE_OPENAI_API_KEY, AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_API_VERSION (optional)
    - Google Gemini: GOOGLE_API_KEY
    - Ollama, HuggingFace, Fake: none

    Args:
        model: Model identifier string
        **kwargs: Additional provider-specific parameters

    Returns:
        Embeddings instance (OpenAIEmbeddings, OllamaEmbeddings, etc.)

    Raises:
        ImportError: If required provider package is not installed
        ValueError: If required environment variables are missing or the
            fake dimension is invalid
    """
    try:
        # Deterministic fake (no network)
        if model.startswith("fake/"):
            from langchain_core.embeddings import DeterministicFakeEmbedding

            size_str = model.replace("fake/", "")
            try:
                size = int(size_str)
            except ValueError:
                raise ValueError(f"Fake embedding size must be an integer: {model}") from None
            if size <= 0:
                raise ValueError(f"Fake embedding size must be positive: {model}")

            logger.info(f"Creating deterministic fake embeddings (size={size})")
            return DeterministicFakeEmbedding(size=size)

        # Azure OpenAI
        elif model.startswith("azure/"):
            from langchain_openai import AzureOpenAIEmbeddings

            deployment_name = model.replace("azure/", "")

            api_key = os.getenv("AZURE_OPENAI_API_KEY")
            endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
            api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview")

            if not api_key:
                raise ValueError(
                    "Azure OpenAI requires AZURE_OPENAI_API_KEY environment variable"
                )
            if not endpoint:
                raise ValueError(
                    "Azure OpenAI requires AZURE_OPENAI_ENDPOINT environment variable"
                )

            logger.info(
                f"Creating Azure OpenAI embeddings with deployment: {deployment_name}, endpoint: {endpoint}"
            )

            return AzureOpenAIEmbeddings(
                azure_deployment=deployment_name,
                azure_endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
                **kwargs,
            )

        # Ollama (local models)
        elif model.startswith("ollama/"):
            from langchain_ollama import OllamaEmbeddings

            model_name = model.replace("ollama/", "")

            logger.info(f"Creating Ollama embeddings with model: {model_name}")

            return OllamaEmbeddings(model=model_name, **kwargs)

        # Google Gemini
        elif model.startswith("gemini/"):
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            model_name = model.replace("gemini/", "")

            api_key = os.getenv("GOOGLE_API_KEY")
            if not api_key:
                raise ValueError(
                    "Google Gemini requires GOOGLE_API_KEY environment variable"
                )

            logger.info(f"Creating Google Gemini embeddings with model: {model_name}")

            return GoogleGenerativeAIEmbeddings(
                model=f"models/{model_name}",
                google_api_key=api_key,
                **kwargs,
            )

        # HuggingFace sentence-transformers (local)
        elif model.startswith("huggingface/"):
            from langchain_huggingface import HuggingFaceEmbeddings

            model_name = model.replace("huggingface/", "")

            logger.info(f"Creating HuggingFace embeddings with model: {model_name}")

            return HuggingFaceEmbeddings(model_name=model_name, **kwargs)

        # Default to OpenAI
        else:
            from langchain_openai import OpenAIEmbeddings

            model_name = model.replace("openai/", "")

            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OpenAI requires OPENAI_API_KEY environment variable")

            logger.info(f"Creating OpenAI embeddings with model: {model_name}")

            return OpenAIEmbeddings(
                model=model_name,
                api_key=api_key,
                **kwargs,
            )

    except ImportError as e:
        error_msg = (
            f"Failed to import required LangChain package: {e}\n\n"
            f"Installation instructions:\n"
            f"  - For OpenAI / Azure OpenAI: pip install langchain-openai\n"
            f"  - For Ollama: pip install langchain-ollama\n"
            f"  - For Google Gemini: pip install langchain-google-genai\n"
            f"  - For HuggingFace: pip install langchain-huggingface"
        )
        logger.error(error_msg)
        raise ImportError(error_msg) from e


def create_embedding_port(
    model: str = "fake/384",
    timeout: float | None = 5.0,
    max_retries: int = 2,
    retry_base_delay: float = 0.2,
    **kwargs: Any,
) -> EmbeddingPort:
    """
    Create an EmbeddingPort for the given model identifier.

    Args:
        model: Model identifier (see create_embeddings)
        timeout: Per-call timeout in seconds
        max_retries: Adapter-level retries
        retry_base_delay: Base delay for retry backoff (seconds)
        **kwargs: Passed through to the LangChain integration

    Returns:
        Configured EmbeddingPort
    """
    embeddings = create_embeddings(model=model, **kwargs)
    return LangChainEmbeddingAdapter(
        embeddings,
        timeout=timeout,
        max_retries=max_retries,
        retry_base_delay=retry_base_delay,
    )
