"""
CLI Tests.
"""

import pytest

from address_sync import cli
from explorer_adapters.exceptions import NotFoundError
from storage.models.address import Address

from conftest import ADDRESS


class TestParser:

    def test_sync_arguments(self):
        args = cli.create_parser().parse_args(["--log-level", "DEBUG", "sync", ADDRESS, "--max-concurrent", "3"])
        assert args.command == "sync"
        assert args.addresses == [ADDRESS]
        assert args.max_concurrent == 3
        assert args.log_level == "DEBUG"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args([])

    def test_sync_requires_address(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["sync"])


class TestFormatOutcome:

    def test_synced(self):
        row = Address(address=ADDRESS, sync_status="synced")
        assert cli.format_outcome(ADDRESS, row) == f"{ADDRESS}  synced"

    def test_not_found_shows_note(self):
        row = Address(address=ADDRESS, sync_status="not_found", last_error="Address not found on block explorer.")
        assert cli.format_outcome(ADDRESS, row).endswith("(Address not found on block explorer.)")

    def test_exception(self):
        line = cli.format_outcome(ADDRESS, ValueError("bad balance"))
        assert line == f"{ADDRESS}  failed  (ValueError: bad balance)"


class TestMain:

    def test_init_db(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'sync.db'}")

        assert cli.main(["init-db"]) == 0
        assert (tmp_path / "sync.db").exists()
        assert "Database initialized" in capsys.readouterr().out

    def test_invalid_configuration(self, monkeypatch, capsys):
        monkeypatch.setenv("SYNC_TIMEOUT_SECONDS", "0")

        assert cli.main(["init-db"]) == 1
        assert "invalid configuration" in capsys.readouterr().err

    def test_sync_exit_code_reflects_failures(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'sync.db'}")

        async def fake_sync_many(self, addresses):
            return {
                ADDRESS: Address(address=ADDRESS, sync_status="synced"),
                "0x12": NotFoundError(message="gone"),
            }

        monkeypatch.setattr(cli.SyncWorkerPool, "sync_many", fake_sync_many)

        assert cli.main(["sync", ADDRESS, "0x12"]) == 1
        out = capsys.readouterr().out
        assert f"{ADDRESS}  synced" in out
        assert "0x12  failed" in out
