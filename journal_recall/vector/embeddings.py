"""
Embedding providers.

Every provider implements the blocking embed_text(); callers in the async
core use embed(), which runs the provider off the event loop and reports
any failure as EmbeddingGenerationError.
"""

import asyncio
import hashlib
import math
import re
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, List, Optional

import numpy as np

from ..core.exceptions import EmbeddingGenerationError


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    name = "provider"

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed text without blocking the event loop.

        Returns:
            float64 vector

        Raises:
            EmbeddingGenerationError: If the provider fails or returns nothing
        """
        try:
            values = await asyncio.to_thread(self.embed_text, text)
        except EmbeddingGenerationError:
            raise
        except Exception as e:
            raise EmbeddingGenerationError(f"{self.name} failed to embed text: {e}", provider=self.name) from e

        if values is None or len(values) == 0:
            raise EmbeddingGenerationError(f"{self.name} returned an empty vector", provider=self.name)

        vector = np.asarray(values, dtype=np.float64).reshape(-1)
        if not np.all(np.isfinite(vector)):
            raise EmbeddingGenerationError(f"{self.name} returned non-finite values", provider=self.name)
        return vector


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    Text is hashed with SHA-256 in counter mode until enough bytes exist to
    fill every dimension, so the same text always yields the same unit
    vector without any model dependency.
    """

    name = "hash"

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        seed = text.encode("utf-8")
        raw = bytearray()
        counter = 0
        while len(raw) < self.dimension * 4:
            raw.extend(hashlib.sha256(seed + counter.to_bytes(4, "big")).digest())
            counter += 1

        values = np.frombuffer(bytes(raw[:self.dimension * 4]), dtype=">u4").astype(np.float64)
        # Map to [-1, 1] then normalize
        vector = values / float(2 ** 32) * 2 - 1
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


# Common English stop words ignored by keyword features
STOP_WORDS = {
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'is', 'are', 'was', 'were', 'be', 'been', 'have',
    'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could', 'should',
    'this', 'that', 'these', 'those', 'i', 'me', 'my', 'we', 'our', 'you',
    'your', 'he', 'him', 'his', 'she', 'her', 'it', 'its', 'they', 'them',
}

EMOTION_WORDS = {
    'happy', 'sad', 'angry', 'excited', 'depressed', 'anxious', 'calm',
    'stressed', 'relaxed', 'worried', 'confident', 'grateful', 'frustrated',
}

TIME_WORDS = {
    'today', 'yesterday', 'tomorrow', 'morning', 'afternoon', 'evening',
    'night', 'week', 'month', 'year', 'recently', 'later', 'soon',
}

RELATIONSHIP_WORDS = {
    'family', 'friend', 'work', 'colleague', 'partner', 'spouse', 'parent',
    'child', 'sibling', 'boss', 'team', 'relationship', 'love', 'conflict',
}

POSITIVE_WORDS = {
    'good', 'great', 'amazing', 'wonderful', 'excellent', 'perfect',
    'love', 'beautiful', 'happy', 'joy', 'success', 'win', 'achieve',
}

NEGATIVE_WORDS = {
    'bad', 'terrible', 'awful', 'horrible', 'worst', 'hate', 'sad',
    'angry', 'frustrated', 'fail', 'problem', 'issue', 'struggle',
}


class JournalFeatureEmbedding(IEmbeddingProvider):
    """Content-feature embedding tuned for journal entries.

    Layout of the 100 dimensions:
      0-29   hashed frequencies of the 30 most common non-stop words
      30-32  emotion, time and relationship word ratios
      33-36  sentence, paragraph, question and exclamation counts
      37-38  positive and negative tone ratios
      39-99  unused (zero)

    The result is L2-normalised. Blank text yields the zero vector, which
    search treats as similarity 0 to everything.
    """

    name = "features"
    DIMENSION = 100
    KEYWORD_SLOTS = 30

    def embed_text(self, text: str) -> list[float]:
        embedding = [0.0] * self.DIMENSION
        if not text or not text.strip():
            return embedding

        words = [w for w in self._preprocess(text).split(" ") if w]
        if not words:
            return embedding

        self._add_word_frequency_features(words, embedding)
        self._add_category_features(words, embedding)
        self._add_structural_features(text, embedding)
        self._add_tone_features(words, embedding)

        magnitude = math.sqrt(sum(v * v for v in embedding))
        if magnitude > 0:
            embedding = [v / magnitude for v in embedding]
        return embedding

    def get_dimension(self) -> int:
        return self.DIMENSION

    @staticmethod
    def _preprocess(text: str) -> str:
        text = re.sub(r"[^\w\s]", " ", text.lower())
        return re.sub(r"\s+", " ", text).strip()

    def _add_word_frequency_features(self, words: List[str], embedding: List[float]) -> None:
        counts = Counter(w for w in words if w not in STOP_WORDS)
        # Ties broken alphabetically so the same text always fills the same slots
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        for word, count in ranked[:self.KEYWORD_SLOTS]:
            embedding[self._hash_to_index(word, self.KEYWORD_SLOTS)] += count / len(words)

    @staticmethod
    def _add_category_features(words: List[str], embedding: List[float]) -> None:
        total = len(words)
        embedding[30] = sum(1 for w in words if w in EMOTION_WORDS) / total
        embedding[31] = sum(1 for w in words if w in TIME_WORDS) / total
        embedding[32] = sum(1 for w in words if w in RELATIONSHIP_WORDS) / total

    @staticmethod
    def _add_structural_features(text: str, embedding: List[float]) -> None:
        embedding[33] = len(re.split(r"[.!?]", text)) / 100.0
        embedding[34] = len(text.split("\n\n")) / 50.0
        embedding[35] = text.count("?") / 20.0
        embedding[36] = text.count("!") / 20.0

    @staticmethod
    def _add_tone_features(words: List[str], embedding: List[float]) -> None:
        total = len(words)
        embedding[37] = sum(1 for w in words if w in POSITIVE_WORDS) / total
        embedding[38] = sum(1 for w in words if w in NEGATIVE_WORDS) / total

    @staticmethod
    def _hash_to_index(word: str, max_index: int) -> int:
        return hashlib.sha256(word.encode("utf-8")).digest()[0] % max_index


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The model is loaded on first use.
    """

    name = "sentence_transformers"

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class OllamaEmbedding(IEmbeddingProvider):
    """Embeddings from a local Ollama server."""

    name = "ollama"

    def __init__(self, model_name: str = "nomic-embed-text", host: Optional[str] = None):
        self.model_name = model_name
        self.host = host
        self._client = None
        self._dimension = None

    @property
    def client(self):
        if self._client is None:
            import ollama
            self._client = ollama.Client(host=self.host)
        return self._client

    def embed_text(self, text: str) -> list[float]:
        import ollama

        try:
            response = self.client.embeddings(model=self.model_name, prompt=text)
        except ollama.ResponseError as e:
            raise EmbeddingGenerationError(f"Ollama model error: {e}", provider=self.name) from e

        embedding = response["embedding"]
        if self._dimension is None and embedding:
            self._dimension = len(embedding)
        return list(embedding)

    def get_dimension(self) -> int:
        if self._dimension is None:
            self.embed_text("dimension probe")
        return self._dimension


def provider_info(provider: IEmbeddingProvider) -> Dict[str, object]:
    """Describe a provider for health reporting without loading any model."""
    return {
        "provider": provider.name,
        "model": getattr(provider, "model_name", None),
    }
