"""
Tests for the plinko-lab command line host
"""

import io
import logging

import pytest

import main as main_module
from main import Application, build_parser, main


@pytest.fixture
def instant_playback(monkeypatch):
    for key in ("PLINKO_LEAD_IN_MS", "PLINKO_TICK_INTERVAL_MS", "PLINKO_SETTLE_DELAY_MS"):
        monkeypatch.setenv(key, "0")


class TestParser:
    def test_play_defaults(self):
        args = build_parser().parse_args(["play"])

        assert args.command == "play"
        assert args.column == 6
        assert args.bet == "1.00"
        assert args.seed is None
        assert args.verify is False

    def test_verify_fields(self):
        argv = ["verify", "--server-seed", "s", "--client-seed", "c", "--nonce", "1"]
        args = build_parser().parse_args(argv + ["--drop-column", "6"])

        assert args.server_seed == "s"
        assert args.client_seed == "c"
        assert args.nonce == "1"
        assert args.drop_column == "6"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestApplication:
    @pytest.mark.asyncio
    async def test_play_prints_summary(self, authority_url, instant_playback):
        out = io.StringIO()
        app = Application(base_url=authority_url, out=out)
        try:
            code = await app.play(drop_column=6, bet="1.00", client_seed="abc", verify=False)
        finally:
            await app.shutdown()

        text = out.getvalue()
        assert code == 0
        assert "Round Result" in text
        assert "Win Amount:    $2.50" in text
        assert " bin " in text

    @pytest.mark.asyncio
    async def test_play_and_verify(self, authority_url, instant_playback):
        out = io.StringIO()
        app = Application(base_url=authority_url, out=out)
        try:
            code = await app.play(drop_column=6, bet="1.00", client_seed="abc", verify=True)
        finally:
            await app.shutdown()

        assert code == 0
        assert "Verification Successful" in out.getvalue()

    @pytest.mark.asyncio
    async def test_degraded_verify_reports_missing_seed(
        self, authority_url, fake_authority, instant_playback
    ):
        fake_authority.responses["reveal"] = (500, "boom")
        out = io.StringIO()
        app = Application(base_url=authority_url, out=out)
        try:
            code = await app.play(drop_column=6, bet="1.00", client_seed="abc", verify=True)
        finally:
            await app.shutdown()

        text = out.getvalue()
        assert code == 2
        assert "WARNING: Server seed reveal failed (500): boom." in text
        assert "Cannot verify, missing: Server Seed" in text

    @pytest.mark.asyncio
    async def test_manual_verify(self, authority_url, fake_authority):
        out = io.StringIO()
        app = Application(base_url=authority_url, out=out)
        try:
            code = await app.verify(
                {"server_seed": "s", "client_seed": "c", "nonce": "1", "drop_column": "6"}
            )
        finally:
            await app.shutdown()

        assert code == 0
        assert fake_authority.calls("verify")[0][2]["serverSeed"] == "s"
        assert "Final Bin: 6" in out.getvalue()

    @pytest.mark.asyncio
    async def test_shutdown_logs_bus_stats(self, authority_url, instant_playback, caplog):
        app = Application(base_url=authority_url, out=io.StringIO())
        await app.play(drop_column=6, bet="1.00", client_seed="abc", verify=False)

        with caplog.at_level(logging.INFO):
            await app.shutdown()

        assert "Application shutdown complete" in caplog.text
        assert "0 handler errors" in caplog.text


class TestMain:
    def test_debug_flag_reaches_application(self, monkeypatch):
        created = {}

        class RecordingApplication:
            def __init__(self, base_url=None, out=None, debug=False):
                created["debug"] = debug

            async def play(self, **kwargs):
                created["play"] = kwargs
                return 0

            async def shutdown(self):
                created["shutdown"] = True

        monkeypatch.setattr(main_module, "Application", RecordingApplication)

        assert main(["--debug", "play", "--seed", "abc"]) == 0
        assert created["debug"] is True
        assert created["play"]["client_seed"] == "abc"
        assert created["shutdown"] is True
