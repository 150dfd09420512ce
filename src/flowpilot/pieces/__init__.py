"""Piece catalog and retrieval for the planner."""

from .catalog import Piece, PieceCapability, PieceCatalog
from .retriever import EmbeddingPieceRetriever, PieceRetriever

__all__ = ["EmbeddingPieceRetriever", "Piece", "PieceCapability", "PieceCatalog", "PieceRetriever"]
