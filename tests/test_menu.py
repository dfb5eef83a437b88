"""Tests for the export menu state."""

import logging
from unittest.mock import MagicMock

from projlens.menu import ExportMenuState


class TestExportMenuState:
    """Tests for ExportMenuState."""

    def test_default_disabled(self):
        assert ExportMenuState().export_enabled is False

    def test_set_notifies_listeners(self):
        menu = ExportMenuState()
        listener = MagicMock()
        menu.add_listener(listener)
        menu.set_export_enabled(True)
        assert menu.export_enabled is True
        listener.assert_called_once_with(True)

    def test_failing_listener_does_not_block_others(self, caplog):
        menu = ExportMenuState(enabled=True)
        broken = MagicMock(side_effect=RuntimeError("window gone"))
        ok = MagicMock()
        menu.add_listener(broken)
        menu.add_listener(ok)
        with caplog.at_level(logging.ERROR, logger="projlens.menu"):
            menu.set_export_enabled(False)
        ok.assert_called_once_with(False)
        assert menu.export_enabled is False
        assert "Export menu listener failed" in caplog.text
