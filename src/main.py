"""
Main Entry Point for Plinko Lab
Terminal host for the provably-fair Plinko client
"""

__version__ = "1.0.0"

import argparse
import asyncio
import logging
import sys

from config import ConfigError, config
from core import (
    IncompleteInput,
    InvalidInput,
    PlinkoError,
    RoundController,
    VerificationFailed,
    VerificationForm,
)
from core.display import render_ball, render_drop_zone, render_summary
from core.playback_engine import PathPlaybackEngine
from core.verifier import FIELD_LABELS
from models import BallPosition, BoardGeometry, GameResult
from services.event_bus import EventBus, Events
from services.logger import setup_logging
from services.round_authority import RoundAuthorityClient
from utils import generate_client_seed


class Application:
    """
    Main application controller
    Wires the controller, playback engine and verification form to the terminal
    """

    def __init__(self, base_url: str | None = None, out=None, debug: bool = False):
        """
        Initialize application

        Args:
            base_url: Round authority URL (default: from config)
            out: Text stream for output (default: stdout)
            debug: Log everything to the console instead of warnings only
        """
        self.out = out or sys.stdout
        self.logger = setup_logging({"console_level": "DEBUG" if debug else "WARNING"})
        config.set_logger(self.logger)
        config.validate()

        self.bus = EventBus()
        self.geometry = BoardGeometry.from_config(config.section("board"))
        self.client = RoundAuthorityClient(base_url=base_url)
        self.engine = PathPlaybackEngine(
            geometry=self.geometry, on_position=self._draw_ball, bus=self.bus
        )
        self.controller = RoundController(self.client, engine=self.engine, bus=self.bus)
        self.form = VerificationForm(self.client, bus=self.bus)
        self.form.attach()

        self.bus.subscribe(Events.ROUND_COMPLETED, self._handle_round_completed)
        self.bus.subscribe(Events.VERIFICATION_PREPARED, self._handle_verification_prepared)

        self.logger.info(f"Plinko Lab {__version__} using {self.client.base_url}")

    def _print(self, text: str = "") -> None:
        print(text, file=self.out, flush=True)

    # ========================================================================
    # EVENT HANDLERS
    # ========================================================================

    def _draw_ball(self, index: int, position: BallPosition) -> None:
        self._print(render_ball(position, self.geometry))

    def _handle_round_completed(self, event):
        result: GameResult = event["data"]
        self._print()
        self._print("Round Result")
        self._print(render_summary(result))

    def _handle_verification_prepared(self, event):
        record = event["data"]
        if record.degraded:
            self._print()
            self._print(f"WARNING: {record.notice}")

    # ========================================================================
    # COMMANDS
    # ========================================================================

    async def play(self, drop_column: int, bet: str, client_seed: str, verify: bool) -> int:
        """Play one round; optionally verify it. Returns a process exit code."""
        self._print(f"Dropping from column {drop_column} with seed {client_seed}")
        self._print(render_drop_zone(drop_column, self.geometry))

        result = await self.controller.request_drop(drop_column, bet, client_seed)
        if result is None:
            return 1
        await self.controller.wait_for_playback()

        if not verify:
            return 0

        await self.controller.request_verification()
        return await self._submit_form(interactive=self.form.degraded)

    async def verify(self, values: dict[str, str]) -> int:
        """Verify a round from manually supplied fields."""
        for name, value in values.items():
            if value is not None:
                self.form.set_field(name, value)
        return await self._submit_form(interactive=False)

    async def _submit_form(self, interactive: bool) -> int:
        if interactive and sys.stdin.isatty():
            for name in self.form.inputs.missing_fields():
                value = await asyncio.to_thread(input, f"{FIELD_LABELS[name]}: ")
                self.form.set_field(name, value.strip())

        try:
            report = await self.form.submit()
        except IncompleteInput as e:
            labels = ", ".join(FIELD_LABELS[name] for name in e.missing)
            self._print(f"Cannot verify, missing: {labels}")
            if self.form.server_seed_hint:
                self._print(self.form.server_seed_hint)
            return 2
        except VerificationFailed:
            self._print("\n".join(self.form.render_report()))
            return 1

        self._print()
        self._print("\n".join(self.form.render_report()))
        return 0 if report.verified else 1

    async def shutdown(self) -> None:
        """Cancel timers and background work, then close the HTTP session"""
        self.form.detach()
        await self.controller.aclose()
        await self.client.close()

        stats = self.bus.get_stats()
        self.logger.info(
            f"Application shutdown complete: {stats['events_published']} events published, "
            f"{stats['errors']} handler errors"
        )


async def _run(args: argparse.Namespace) -> int:
    app = Application(base_url=args.api_url, debug=args.debug)
    try:
        if args.command == "verify":
            return await app.verify(
                {
                    "server_seed": args.server_seed,
                    "client_seed": args.client_seed,
                    "nonce": args.nonce,
                    "drop_column": args.drop_column,
                }
            )
        return await app.play(
            drop_column=args.column,
            bet=args.bet,
            client_seed=args.seed or generate_client_seed(config.get("game", "client_seed_length")),
            verify=args.verify,
        )
    except InvalidInput as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except PlinkoError as e:
        print(f"Failed to play round: {e}", file=sys.stderr)
        return 1
    finally:
        await app.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plinko-lab",
        description="Plinko Lab - Provably Fair, Deterministic, Transparent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s play --column 6 --bet 1.00            # Play one round
  %(prog)s play --verify                         # Play, then verify the round
  %(prog)s verify --server-seed S --client-seed C --nonce 1 --drop-column 6
        """,
    )
    parser.add_argument("--api-url", help="Round authority base URL (default: PLINKO_API_URL)")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    play = subparsers.add_parser("play", help="Drop a ball")
    play.add_argument(
        "--column",
        type=int,
        default=config.get("game", "default_drop_column"),
        help="Drop column 0-12",
    )
    play.add_argument("--bet", default=config.get("game", "default_bet"), help="Bet in dollars")
    play.add_argument("--seed", help="Client seed (default: random)")
    play.add_argument("--verify", action="store_true", help="Verify the round after it lands")

    verify = subparsers.add_parser("verify", help="Verify a finished round")
    verify.add_argument("--server-seed", default="")
    verify.add_argument("--client-seed", default="")
    verify.add_argument("--nonce", default="")
    verify.add_argument("--drop-column", default="")

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point
    """
    args = build_parser().parse_args(argv)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return 2
    except Exception as e:
        logging.critical(f"Unhandled exception: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
