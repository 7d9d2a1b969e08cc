"""
Rune Duel CLI - Command-line interface for the engine.

Usage:
    runeduel serve [--host H] [--port P]        Run the HTTP API
    runeduel simulate [--seed N] [--games N]    Play bot-vs-bot matches
    runeduel decks                              List the starter decks
"""

import argparse
import json
import sys

from .config import configure_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Rune Duel - Two-player card duel engine",
        prog="runeduel",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: RUNEDUEL_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play bot-vs-bot matches")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Shuffle and bot seed")
    simulate_parser.add_argument("--games", type=int, default=1, help="Number of matches")
    simulate_parser.add_argument("--max-steps", type=int, default=2000, help="Step limit per match")
    simulate_parser.add_argument("--output", "-o", help="Write the final state of the last match as JSON")

    # Decks command
    subparsers.add_parser("decks", help="List the starter decks")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "simulate":
        cmd_simulate(args)
    elif args.command == "decks":
        cmd_decks(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the HTTP API with uvicorn."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install uvicorn")
        sys.exit(1)

    from .api.app import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)


def cmd_simulate(args):
    """Play matches between two random bots and print the results."""
    from .bots import RandomPolicy, play_match
    from .engine_core import MatchEngine, dump_state
    from .games.starter import starter_catalog, starter_decks

    catalog = starter_catalog()
    players = [("p1", "Player 1"), ("p2", "Player 2")]
    wins: dict[str, int] = {}
    engine = None

    for game in range(args.games):
        seed = None if args.seed is None else args.seed + game
        engine = MatchEngine(f"sim-{game + 1}", players, seed=seed, catalog=catalog)
        engine.initialize_game(starter_decks(["p1", "p2"]))
        policies = {
            "p1": RandomPolicy(seed=None if seed is None else seed * 2 + 1),
            "p2": RandomPolicy(seed=None if seed is None else seed * 2 + 2),
        }
        report = play_match(engine, policies, max_steps=args.max_steps)

        if report.result:
            result = report.result
            wins[result.winner] = wins.get(result.winner, 0) + 1
            print(
                f"Match {game + 1}: {result.winner} beat {result.loser} "
                f"({result.reason.value}) in {result.turns} turns, {report.steps} steps"
            )
        else:
            print(f"Match {game + 1}: unfinished after {report.steps} steps")

        scores = ", ".join(f"{p.player_id}={p.victory_points}" for p in engine.state.players)
        print(f"  Score: {scores}")

    if args.games > 1:
        print("\nWins:")
        for player_id, count in sorted(wins.items()):
            print(f"  {player_id}: {count}")

    if args.output and engine is not None:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(dump_state(engine.state), f, indent=2)
        print(f"\nFinal state written to {args.output}")


def cmd_decks(args):
    """List the starter decks."""
    from .games.starter import STARTER_DECKS, starter_catalog, starter_deck

    catalog = starter_catalog()
    for name in STARTER_DECKS:
        deck = starter_deck(name)
        legend = catalog.find(deck["champion_legend"])
        leader = catalog.find(deck["champion_leader"])
        card_count = sum(ref.get("quantity", 1) for ref in deck["cards"])
        rune_count = sum(ref.get("quantity", 1) for ref in deck["runes"])
        print(f"{name}: {card_count} cards, {rune_count} runes")
        print(f"  Legend: {legend.name if legend else deck['champion_legend']}")
        print(f"  Leader: {leader.name if leader else deck['champion_leader']}")
        print(f"  Battlefields: {', '.join(deck['battlefields'])}")


if __name__ == "__main__":
    main()
