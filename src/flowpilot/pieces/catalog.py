"""Catalog of pieces available to the planner.

The catalog is a JSON file, either a list of pieces or ``{"pieces": [...]}``::

    {
      "pieces": [
        {
          "name": "slack",
          "display_name": "Slack",
          "description": "Send messages to channels and users",
          "logo_url": "https://cdn.example.com/slack.png",
          "actions": {
            "send_message": {
              "display_name": "Send Message",
              "description": "Send a message to a channel",
              "props": {"channel": "Channel ID", "text": "Message text"}
            }
          },
          "triggers": {}
        }
      ]
    }
"""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from flowpilot.core.exceptions import CatalogError, PieceNotFoundError

logger = logging.getLogger(__name__)


class PieceCapability(BaseModel):
    """A trigger or action exposed by a piece."""

    display_name: str
    description: str = ""
    props: dict[str, str] = Field(default_factory=dict, description="Input property name -> description")


class Piece(BaseModel):
    """Integration unit exposing triggers and actions."""

    name: str = Field(..., pattern="^[a-z0-9@/_-]+$")
    display_name: str
    description: str = ""
    logo_url: Optional[str] = None
    triggers: dict[str, PieceCapability] = Field(default_factory=dict)
    actions: dict[str, PieceCapability] = Field(default_factory=dict)

    def describe(self) -> str:
        """Text used to rank the piece against a request."""
        parts = [f"{self.display_name}: {self.description}".strip()]
        for kind, capabilities in (("Trigger", self.triggers), ("Action", self.actions)):
            parts.extend(
                f"{kind} {name} ({capability.display_name}): {capability.description}"
                for name, capability in capabilities.items()
            )
        return "\n".join(parts)


class PieceCatalog:
    """In-memory, read-only collection of pieces keyed by name."""

    def __init__(self, pieces: Optional[list[Piece]] = None) -> None:
        self._pieces: dict[str, Piece] = {}
        for piece in pieces or []:
            if piece.name in self._pieces:
                logger.warning(f"Duplicate piece '{piece.name}' in catalog, keeping the last definition")
            self._pieces[piece.name] = piece

    @classmethod
    def from_dict(cls, data: Any) -> "PieceCatalog":
        raw_pieces = data.get("pieces", []) if isinstance(data, dict) else data
        if not isinstance(raw_pieces, list):
            raise CatalogError("Catalog must be a list of pieces or an object with a 'pieces' list")
        try:
            return cls([Piece.model_validate(item) for item in raw_pieces])
        except ValidationError as e:
            raise CatalogError(f"Invalid piece definition: {e}") from e

    @classmethod
    def load(cls, path: Path) -> "PieceCatalog":
        """Load a catalog from a JSON file.

        Raises:
            CatalogError: If the file is missing, not JSON, or holds invalid pieces
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise CatalogError(f"Piece catalog not found: {path}") from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Failed to parse piece catalog {path}: {e}") from e

        catalog = cls.from_dict(data)
        logger.info(f"Loaded {len(catalog)} pieces from {path}")
        return catalog

    def get(self, name: str) -> Piece:
        """Return a piece by name.

        Raises:
            PieceNotFoundError: If no piece has this name
        """
        try:
            return self._pieces[name]
        except KeyError:
            raise PieceNotFoundError(f"Unknown piece '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._pieces

    def __iter__(self) -> Iterator[Piece]:
        return iter(self._pieces.values())

    def __len__(self) -> int:
        return len(self._pieces)
