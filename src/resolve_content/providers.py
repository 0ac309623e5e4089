"""Embedding and translation providers, and the concurrency gate in front of them."""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Protocol, TypeVar

import openai
from openai import OpenAI

from common.config import ProviderConfig
from common.errors import FatalProviderError, RetryableProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSLATION_INSTRUCTIONS = (
    "You are a highly skilled and concise professional translator. "
    "When you receive a sentence in Swedish, your task is to translate it into English. "
    "VERY IMPORTANT: Do not output any notes, explanations, alternatives or comments "
    "after or before the translation."
)

LANGUAGE_NAMES = {"en": "English", "sv": "Swedish"}


class EmbeddingProvider(Protocol):
    def embed(self, text: str) -> list[float]: ...


class TranslationProvider(Protocol):
    def translate(self, text: str, target_lang: str) -> str: ...


class ProviderGate:
    """Bounded number of concurrent provider calls.

    A slot is held for a single attempt only, never across a backoff sleep.
    """

    def __init__(self, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._semaphore = threading.BoundedSemaphore(max_concurrency)

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        with self._semaphore:
            return fn(*args, **kwargs)


@contextmanager
def _map_openai_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as exc:
        raise RetryableProviderError(f"{operation} failed: {exc}") from exc
    except openai.APIStatusError as exc:
        if exc.status_code >= 500 or exc.status_code in (408, 409, 429):
            raise RetryableProviderError(f"{operation} failed: {exc}") from exc
        raise FatalProviderError(f"{operation} failed: {exc}") from exc
    except openai.OpenAIError as exc:
        raise FatalProviderError(f"{operation} failed: {exc}") from exc


def build_openai_client(config: ProviderConfig) -> OpenAI:
    """OpenAI client with retries disabled; retrying is done by the pipeline."""
    return OpenAI(
        api_key=os.environ.get("OPENAI_API_KEY"),
        base_url=config.base_url,
        timeout=config.request_timeout,
        max_retries=0,
    )


class OpenAIEmbeddingProvider:
    def __init__(self, client: OpenAI, model: str = "text-embedding-3-large") -> None:
        self.client = client
        self.model = model

    def embed(self, text: str) -> list[float]:
        with _map_openai_errors("embedding"):
            response = self.client.embeddings.create(model=self.model, input=text)
        if not response.data:
            raise FatalProviderError("embedding response contained no data")
        return [float(v) for v in response.data[0].embedding]


class OpenAITranslationProvider:
    """Swedish to English headline translation through chat completions."""

    def __init__(self, client: OpenAI, model: str = "gpt-3.5-turbo") -> None:
        self.client = client
        self.model = model

    def translate(self, text: str, target_lang: str = "en") -> str:
        if target_lang != "en":
            raise FatalProviderError(
                f"Unsupported target language: {LANGUAGE_NAMES.get(target_lang, target_lang)}"
            )
        with _map_openai_errors("translation"):
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                messages=[
                    {"role": "system", "content": TRANSLATION_INSTRUCTIONS},
                    {"role": "user", "content": text},
                ],
            )
        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise RetryableProviderError("translation response was empty")
        return content.strip()


class SentenceTransformerEmbeddingProvider:
    """Local multilingual embeddings; needs the ``local`` extra."""

    def __init__(self, model: str = "paraphrase-multilingual-MiniLM-L12-v2") -> None:
        from sentence_transformers import SentenceTransformer

        logger.info("Loading model: %s", model)
        self.model = model
        self.encoder = SentenceTransformer(model)
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        with self._lock:
            embedding = self.encoder.encode(text, convert_to_numpy=True)
        return [float(v) for v in embedding.tolist()]


def build_embedding_provider(backend: str, config: ProviderConfig) -> EmbeddingProvider:
    if backend == "openai":
        return OpenAIEmbeddingProvider(build_openai_client(config), config.embedding_model)
    if backend == "local":
        return SentenceTransformerEmbeddingProvider(config.local_embedding_model)
    raise ValueError(f"Unknown embedding backend: {backend}")
