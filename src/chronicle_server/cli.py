"""
Command-line interface for Chronicle Server.

Provides CLI commands:
- run: Start the API server
- personas: List the director personas the server would load
- config: Print the effective configuration
- play: Play a scene against a running server from the terminal

Usage:
    chronicle-server run [--host HOST] [--port PORT]
    chronicle-server personas
    chronicle-server config
    chronicle-server play [--server URL]

Environment Variables:
    CHRONICLE_HOST / CHRONICLE_PORT: API bind address (see config/server.example.ini)
    CHRONICLE_SERVER_URL: Server used by ``play`` (default: http://localhost:8000)
"""

import argparse
import sys
from collections.abc import Callable

from chronicle_server.client import ChronicleAPIClient

PLAY_HELP = """Commands:
  <action>[; <action> ...]   Submit one or more actions for this turn
  /state                     Show HP, round and active effects
  /export FILE               Save the chronicle as HTML
  /quit                      Leave (the scene stays saved on the server)"""


def cmd_run(args: argparse.Namespace) -> int:
    """Run the API server until interrupted."""
    from chronicle_server.api.server import start_server

    try:
        start_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        print("\nServer stopped.")
    return 0


def cmd_personas(args: argparse.Namespace) -> int:
    """List director personas: built-ins plus the configured persona directory."""
    from chronicle_server.config import config
    from chronicle_server.game.personas import PersonaRegistry

    registry = PersonaRegistry.from_config(config.personas)
    for persona in registry.directors():
        marker = "*" if persona.persona_id == config.personas.default_persona else " "
        print(f"{marker} {persona.persona_id:<20} {persona.name:<28} voice={persona.voice}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    from chronicle_server.config import print_config_summary

    print_config_summary()
    return 0


# ============================================================================
# TERMINAL PLAY CLIENT
# ============================================================================


def _print_turn(data: dict, output: Callable[[str], None]) -> None:
    output("")
    output(data["narration"])
    scene = data["scene"]
    if data.get("player_costs"):
        output(f"  (your actions cost {sum(data['player_costs'])})")
    if data.get("opponent_actions"):
        output(f"  {scene['opponent']['name'] if scene.get('opponent') else 'Opponent'}: "
               + "; ".join(data["opponent_actions"]))
    if data.get("combat_started"):
        output(f"  ⚔ Combat begins against {scene['opponent']['name']}!")
    if data.get("combat_ended"):
        output(f"  Combat is over ({data.get('combat_winner')}).")
    if scene["mode"] != "sandbox":
        output(f"  Round {scene['round']} | HP {scene['player_hp']} vs {scene['opponent_hp']}")
    if scene["game_over"]:
        output(f"  GAME OVER: {scene['final_reason']}")


def _print_state(data: dict, output: Callable[[str], None]) -> None:
    output(f"Scene {data['scene_id']} ({data['mode']}), round {data['round']}")
    output(f"  {data['player']['name']}: HP {data['player_hp']}")
    if data.get("opponent"):
        output(f"  {data['opponent']['name']}: HP {data['opponent_hp']}")
    for effect in data.get("effects", []):
        output(f"  effect: {effect['name']} on {effect['target']} ({effect['duration']} left)")


def play_session(
    client: ChronicleAPIClient,
    *,
    input_fn: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> int:
    """Interactive loop: start a scene, then submit turns until /quit or game over."""
    personas = client.list_personas()
    if not personas["success"]:
        output(f"Error: {personas['error']}")
        return 1
    for persona in personas["data"]["personas"]:
        output(f"  {persona['persona_id']}: {persona['name']}")

    fields = {
        "player_name": input_fn("Your name: ").strip(),
        "setting": input_fn("Setting: ").strip(),
        "player_opening": input_fn("Your opening: ").strip(),
        "opponent_name": input_fn("Opponent name (blank for sandbox): ").strip() or None,
        "persona_id": input_fn("Director persona (blank for default): ").strip() or None,
    }
    started = client.start_session(**fields)
    if not started["success"]:
        output(f"Error: {started['error']}")
        return 1

    scene_id = started["data"]["scene_id"]
    _print_turn(started["data"], output)
    output(PLAY_HELP)

    while True:
        try:
            line = input_fn("> ").strip()
        except EOFError:
            line = "/quit"
        if not line:
            continue

        if line == "/quit":
            output(f"Scene {scene_id} saved.")
            return 0
        if line == "/state":
            result = client.get_scene(scene_id)
            if result["success"]:
                _print_state(result["data"], output)
            else:
                output(f"Error: {result['error']}")
            continue
        if line.startswith("/export"):
            _, _, path = line.partition(" ")
            result = client.export_chronicle(scene_id)
            if not result["success"]:
                output(f"Error: {result['error']}")
                continue
            path = path.strip() or f"chronicle_{scene_id}.html"
            with open(path, "w", encoding="utf-8") as handle:
                handle.write(result["text"])
            output(f"Chronicle saved to {path}")
            continue

        actions = [a.strip() for a in line.split(";") if a.strip()]
        result = client.submit_turn(scene_id, actions)
        if not result["success"]:
            output(f"Error: {result['error']}")
            continue
        _print_turn(result["data"], output)
        if result["data"]["scene"]["game_over"]:
            return 0


def cmd_play(args: argparse.Namespace) -> int:
    """Play a scene from the terminal against a running server."""
    try:
        return play_session(ChronicleAPIClient(args.server))
    except KeyboardInterrupt:
        print()
        return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="chronicle-server",
        description="Chronicle Server - narrative combat game turn server",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run the API server")
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: from config, 8000)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: from config, 0.0.0.0)",
    )
    run_parser.set_defaults(func=cmd_run)

    # personas command
    personas_parser = subparsers.add_parser("personas", help="List director personas")
    personas_parser.set_defaults(func=cmd_personas)

    # config command
    config_parser = subparsers.add_parser("config", help="Show effective configuration")
    config_parser.set_defaults(func=cmd_config)

    # play command
    play_parser = subparsers.add_parser("play", help="Play a scene in the terminal")
    play_parser.add_argument(
        "--server",
        type=str,
        help="Server URL (default: CHRONICLE_SERVER_URL or http://localhost:8000)",
    )
    play_parser.set_defaults(func=cmd_play)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
