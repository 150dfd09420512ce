"""Tests for loading and querying the piece catalog."""

import json

import pytest

from flowpilot.core.exceptions import CatalogError, PieceNotFoundError
from flowpilot.pieces.catalog import Piece, PieceCatalog
from tests.shared.mocks import SAMPLE_CATALOG


class TestLoading:
    def test_load_from_file(self, catalog_file):
        catalog = PieceCatalog.load(catalog_file)

        assert len(catalog) == 3
        assert "slack" in catalog
        assert [piece.name for piece in catalog] == ["google-sheets", "slack", "schedule"]

    def test_bare_list_is_accepted(self):
        catalog = PieceCatalog.from_dict(SAMPLE_CATALOG["pieces"])

        assert len(catalog) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError, match="Piece catalog not found"):
            PieceCatalog.load(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(CatalogError, match="Failed to parse piece catalog"):
            PieceCatalog.load(path)

    def test_pieces_must_be_a_list(self):
        with pytest.raises(CatalogError, match="list of pieces"):
            PieceCatalog.from_dict({"pieces": {"slack": {}}})

    def test_invalid_piece_name(self, tmp_path):
        path = tmp_path / "pieces.json"
        path.write_text(json.dumps([{"name": "Slack Bot", "display_name": "Slack"}]))

        with pytest.raises(CatalogError, match="Invalid piece definition"):
            PieceCatalog.load(path)

    def test_duplicate_names_keep_last(self, caplog):
        catalog = PieceCatalog.from_dict(
            [
                {"name": "slack", "display_name": "Slack v1"},
                {"name": "slack", "display_name": "Slack v2"},
            ]
        )

        assert len(catalog) == 1
        assert catalog.get("slack").display_name == "Slack v2"
        assert "Duplicate piece 'slack'" in caplog.text


class TestLookup:
    def test_get_returns_piece_with_capabilities(self, catalog):
        piece = catalog.get("google-sheets")

        assert piece.triggers["new_row"].props == {"spreadsheet_id": "Spreadsheet ID", "sheet_id": "Sheet ID"}
        assert set(piece.actions) == {"insert_row", "update_row"}

    def test_unknown_piece(self, catalog):
        with pytest.raises(PieceNotFoundError, match="Unknown piece 'discord'"):
            catalog.get("discord")

    def test_scoped_names_are_valid(self):
        piece = Piece(name="@activepieces/piece-slack", display_name="Slack")

        assert piece.name == "@activepieces/piece-slack"


def test_describe_includes_capabilities(catalog):
    text = catalog.get("slack").describe()

    assert text.startswith("Slack: Send a message to a Slack channel")
    assert "Action send_message (Send Message): Send a message to a channel" in text
