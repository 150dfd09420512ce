"""Semantic retrieval of pieces relevant to a user request."""

import logging
import threading
from typing import Optional, Protocol

import llm

from flowpilot.pieces.catalog import PieceCatalog
from flowpilot.planning.ir_models import ContextItem

logger = logging.getLogger(__name__)


def _similarity(a: list[float], b: list[float]) -> float:
    # Zero vectors carry no signal and would divide by zero
    if not any(a) or not any(b):
        return 0.0
    return float(llm.cosine_similarity(a, b))


class PieceRetriever(Protocol):
    """Ranks pieces by relevance to a prompt."""

    def find_relevant_pieces(self, prompt: str, threshold: Optional[float] = None) -> list[ContextItem]: ...


class EmbeddingPieceRetriever:
    """Rank catalog pieces by cosine similarity of llm embeddings.

    Piece embeddings are computed once, on first use, and reused by every
    later request.
    """

    def __init__(
        self,
        catalog: PieceCatalog,
        embedding_model: str = "3-small",
        default_threshold: float = 0.3,
        top_k: int = 10,
    ) -> None:
        self.catalog = catalog
        self.embedding_model = embedding_model
        self.default_threshold = default_threshold
        self.top_k = top_k
        self._piece_vectors: Optional[dict[str, list[float]]] = None
        self._lock = threading.Lock()

    def _index(self, model: llm.EmbeddingModel) -> dict[str, list[float]]:
        with self._lock:
            if self._piece_vectors is None:
                pieces = list(self.catalog)
                vectors = model.embed_multi([piece.describe() for piece in pieces])
                self._piece_vectors = {piece.name: list(vector) for piece, vector in zip(pieces, vectors)}
                logger.debug(f"Embedded {len(pieces)} pieces with {self.embedding_model}")
            return self._piece_vectors

    def find_relevant_pieces(self, prompt: str, threshold: Optional[float] = None) -> list[ContextItem]:
        """Return pieces at or above the threshold, most similar first."""
        if threshold is None:
            threshold = self.default_threshold

        model = llm.get_embedding_model(self.embedding_model)
        piece_vectors = self._index(model)
        query = model.embed(prompt)

        items = []
        for name, vector in piece_vectors.items():
            similarity = _similarity(query, vector)
            if similarity < threshold:
                continue
            piece = self.catalog.get(name)
            items.append(
                ContextItem(
                    piece_name=piece.name,
                    content=piece.description or piece.display_name,
                    similarity=similarity,
                    logo_url=piece.logo_url,
                )
            )

        items.sort(key=lambda item: item.relevance_score, reverse=True)
        logger.info(
            f"Found {len(items)} relevant pieces (threshold {threshold})",
            extra={"phase": "exec", "count": len(items)},
        )
        return items[: self.top_k]
