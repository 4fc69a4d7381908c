"""Command line front end for tournament registration and rounds."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
from collections.abc import Sequence
from dataclasses import replace

import aiohttp

from .api import BracketApi
from .config import ClientConfig, read_client_config
from .errors import BracketError, NetworkFailure, StaleTarget, Unauthorized
from .progression import Phase, RoundView, TournamentProgressionGate
from .registration import TournamentRegistry
from .render import render_participants, render_round_view, render_tournament_list
from .session import SessionStore, login

log = logging.getLogger(__name__)

EXIT_ERROR = 2
EXIT_UNAUTHORIZED = 3
EXIT_NETWORK = 4

REGISTRY_COMMANDS = frozenset(
    {"tournaments", "participants", "join", "register", "close-registration"}
)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bracket-client",
        description="View and run the rounds of a tournament bracket",
    )
    parser.add_argument(
        "--server-url",
        help="API base URL including the /api prefix (default: BRACKET_SERVER_URL)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    login_parser = commands.add_parser("login", help="Sign in and store the session")
    login_parser.add_argument("--email", required=True)
    login_parser.add_argument(
        "--password", help="Password (prompted for when omitted)"
    )

    commands.add_parser("logout", help="Forget the stored session")

    tournaments_parser = commands.add_parser("tournaments", help="List tournaments")
    tournaments_parser.add_argument(
        "--mine", action="store_true", help="Only tournaments you participate in"
    )

    participants_parser = commands.add_parser(
        "participants", help="List the players registered for a tournament"
    )
    participants_parser.add_argument("tournament")

    join_parser = commands.add_parser("join", help="Register yourself for a tournament")
    join_parser.add_argument("tournament")

    register_parser = commands.add_parser(
        "register", help="Register players (every known user when none are given)"
    )
    register_parser.add_argument("tournament")
    register_parser.add_argument("players", nargs="*", metavar="PLAYER")

    close_parser = commands.add_parser(
        "close-registration", help="Stop accepting registrations"
    )
    close_parser.add_argument("tournament")

    view_parser = commands.add_parser(
        "view", help="Show the current round, pairing round 1 if needed"
    )
    view_parser.add_argument("tournament")

    advance_parser = commands.add_parser(
        "advance", help="Start the next round once every match is decided"
    )
    advance_parser.add_argument("tournament")

    declare_parser = commands.add_parser("declare", help="Record a match outcome")
    declare_parser.add_argument("tournament")
    declare_parser.add_argument("match")
    declare_parser.add_argument(
        "--winner", help="Winning player id (omit for a draw)"
    )
    declare_parser.add_argument(
        "--result",
        required=True,
        choices=("white_win", "black_win", "draw"),
    )

    randomize_parser = commands.add_parser(
        "randomize", help="Decide every pending match of the current round at random"
    )
    randomize_parser.add_argument("tournament")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


async def _run_gate(
    gate: TournamentProgressionGate, args: argparse.Namespace
) -> RoundView:
    if args.command == "view":
        return await gate.view_round()
    if args.command == "advance":
        return await gate.advance()
    if args.command == "declare":
        return await gate.declare_winner(args.match, args.winner, args.result)
    if args.command == "randomize":
        return await gate.declare_random_winners()
    raise ValueError(f"Unknown command: {args.command}")


async def _run_registry(
    registry: TournamentRegistry, args: argparse.Namespace
) -> str:
    if args.command == "tournaments":
        return render_tournament_list(await registry.list_tournaments(mine=args.mine))
    if args.command == "participants":
        return render_participants(await registry.participants(args.tournament))
    if args.command == "join":
        players = await registry.join(args.tournament)
        return f"Joined tournament {args.tournament}\n{render_participants(players)}"
    if args.command == "register":
        players = await registry.register_players(
            args.tournament, args.players or None
        )
        return render_participants(players)
    if args.command == "close-registration":
        tournament = await registry.close_registration(args.tournament)
        return f"Registration closed; tournament {tournament.id} is {tournament.status}"
    raise ValueError(f"Unknown command: {args.command}")


async def run(args: argparse.Namespace, config: ClientConfig) -> int:
    store = SessionStore(config.session_path)
    if args.command == "logout":
        store.clear()
        print("Logged out")
        return 0

    jar = aiohttp.CookieJar(unsafe=True)
    store.load_cookies(jar)
    async with BracketApi.from_config(config, cookie_jar=jar) as api:
        if args.command == "login":
            password = args.password or getpass.getpass("Password: ")
            record = await login(api, store, args.email, password)
            print(f"Logged in as {record.email}")
            return 0

        session = store.require()
        if args.command in REGISTRY_COMMANDS:
            output = await _run_registry(TournamentRegistry(api, session), args)
            store.save_cookies(jar)
            print(output)
            return 0

        gate = TournamentProgressionGate(
            api,
            session,
            tournament_id=args.tournament,
            lookup_timeout=config.lookup_timeout,
        )
        view = await _run_gate(gate, args)
        store.save_cookies(jar)

    print(render_round_view(view))
    if view.phase is Phase.TOURNAMENT_COMPLETE and args.command == "advance":
        winner = view.winner
        name = winner.name if winner is not None else "Unknown"
        print(f"Tournament completed! Winner is {name}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    config = read_client_config()
    if args.server_url:
        config = replace(config, server_url=args.server_url.rstrip("/"))

    try:
        code = asyncio.run(run(args, config))
    except Unauthorized as exc:
        SessionStore(config.session_path).clear()
        log.error("%s", exc.message or "Please login to continue")
        raise SystemExit(EXIT_UNAUTHORIZED) from exc
    except NetworkFailure as exc:
        log.error("Network failure: %s. Please retry.", exc.message)
        raise SystemExit(EXIT_NETWORK) from exc
    except StaleTarget as exc:  # pragma: no cover - single target per invocation
        log.debug("%s", exc.message)
        raise SystemExit(EXIT_ERROR) from exc
    except BracketError as exc:
        log.error("%s", exc.message or exc.__class__.__name__)
        raise SystemExit(EXIT_ERROR) from exc
    raise SystemExit(code)


if __name__ == "__main__":
    main()
