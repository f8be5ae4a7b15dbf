from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn
from rich.console import Console

from storyteller.api.settings import get_settings
from storyteller.exceptions import StorytellerError
from storyteller.player.session import ListeningSession
from storyteller.player.settings import PlayerSettings
from storyteller.player.view import ConsoleView
from storyteller.services.script_renderer import render_page

console = Console()


def dispatch_command(session: ListeningSession, command: str) -> bool:
    """Apply one typed command to the controller. Returns False to quit."""
    controller = session.controller
    command = command.strip().lower()

    if command in ("q", "quit", "exit"):
        return False
    if command in ("", "p", "play", "pause"):
        controller.toggle_play_pause()
    elif command in ("n", "next"):
        controller.play_next()
    elif command in ("b", "back", "prev"):
        controller.play_previous()
    elif command in ("s", "stop"):
        controller.stop()
    elif command.isdigit():
        controller.play_segment(int(command))
    else:
        session.view.notify(f"Unknown command: {command}", "error")
    return True


async def listen(args: argparse.Namespace) -> int:
    overrides = {
        key: value
        for key, value in {
            "api_base": args.api_base,
            "speech_backend": "local" if args.local else None,
            "language": args.language,
            "pacing_delay": args.pacing_delay,
        }.items()
        if value is not None
    }
    settings = PlayerSettings(**overrides)
    session = ListeningSession.from_settings(settings, ConsoleView(console))

    try:
        try:
            rendered = await session.open_book(Path(args.book))
        except StorytellerError:
            return 1

        if args.html:
            Path(args.html).write_text(render_page(rendered), encoding="utf-8")
            console.print(f"💾 Script saved to {args.html}", style="green")

        if args.no_play:
            return 0

        session.controller.play_segment(0)
        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:  # EOF
                break
            if not dispatch_command(session, line):
                break
    finally:
        await session.aclose()
    return 0


def serve(args: argparse.Namespace) -> int:
    settings = get_settings()
    uvicorn.run(
        "storyteller.api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storyteller", description="Turn a book PDF into a narrated bedtime story."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_p = sub.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", default=None)
    serve_p.add_argument("--port", type=int, default=None)
    serve_p.add_argument("--reload", action="store_true")
    serve_p.set_defaults(func=serve)

    listen_p = sub.add_parser("listen", help="Upload a PDF and listen to its story")
    listen_p.add_argument("book", help="Path to the book PDF")
    listen_p.add_argument("--api-base", default=None, help="Storyteller API base URL")
    listen_p.add_argument("--local", action="store_true", help="Use on-device speech synthesis")
    listen_p.add_argument("--language", default=None, help="Language tag for on-device speech")
    listen_p.add_argument("--pacing-delay", type=float, default=None, help="Seconds between segments")
    listen_p.add_argument("--html", default=None, help="Also save the script as an HTML page")
    listen_p.add_argument("--no-play", action="store_true", help="Only generate the script")
    listen_p.set_defaults(func=lambda a: asyncio.run(listen(a)))

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
