"""Core flowpilot modules for errors and configuration."""

from .exceptions import (
    CatalogError,
    FlowpilotError,
    GenerationError,
    MaterializationError,
    PieceNotFoundError,
    PlanningError,
    RetrievalError,
)

__all__ = [
    "CatalogError",
    "FlowpilotError",
    "GenerationError",
    "MaterializationError",
    "PieceNotFoundError",
    "PlanningError",
    "RetrievalError",
]
