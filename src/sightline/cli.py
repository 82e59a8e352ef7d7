"""Command-line interface for sightline.

Provides the main entry point for listing sources, watching sources
headlessly, or starting the observation endpoint.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="sightline",
        description="Multi-session screen observation and analysis",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/sightline.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("sources", help="List the sources the capture provider can see")

    watch_parser = subparsers.add_parser("watch", help="Observe sources and print findings as they arrive")
    watch_parser.add_argument(
        "-s", "--source", type=int, action="append", dest="source_ids",
        help="Source id to observe (repeatable, default: all sources)",
    )
    watch_parser.add_argument(
        "--duration", type=float, default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    watch_parser.add_argument(
        "--ask", type=str, default=None,
        help="Question to ask every session once its first image is captured",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the local observation endpoint")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    return parser.parse_args(argv)


async def _list_sources(settings) -> None:
    from sightline.factory import build_capture_provider

    async with build_capture_provider(settings) as capture:
        sources = await capture.list_sources()

    if not sources:
        print("No sources available.")
        return
    print(f"{'ID':>6}  {'OWNER':<20}  NAME")
    for source in sources:
        print(f"{source.id:>6}  {source.owner_name[:20]:<20}  {source.name}")


async def _watch(settings, args) -> None:
    """Attach to the selected sources and print pipeline events."""
    from sightline.events import EventKind
    from sightline.factory import build_orchestrator

    async with build_orchestrator(settings) as orchestrator:
        sources = await orchestrator.refresh_sources()
        if args.source_ids:
            wanted = set(args.source_ids)
            sources = [s for s in sources if s.id in wanted]
            missing = wanted - {s.id for s in sources}
            if missing:
                print(f"Unknown source ids: {', '.join(str(i) for i in sorted(missing))}")
        if not sources:
            print("Nothing to watch.")
            return

        names = {}
        async with orchestrator.events.subscribe() as events:
            for source in sources:
                session_id = await orchestrator.add_session(source)
                names[session_id] = source.name
                print(f"Watching [{source.id}] {source.name} ({source.owner_name})")
            print(f"Interval: {orchestrator.capture_interval:.1f}s")
            print()

            asked: set = set()
            questions: set[asyncio.Task] = set()

            async def consume() -> None:
                async for event in events:
                    name = names.get(event.session_id, "-")
                    ts = event.timestamp.strftime("%H:%M:%S")
                    if event.kind == EventKind.FINDING_ADDED:
                        print(f"[{ts}] {name}: {event.data['log']['content']}")
                    elif event.kind == EventKind.CHAT_MESSAGE_ADDED:
                        message = event.data["message"]
                        print(f"[{ts}] {name} <{message['role']}> {message['text']}")
                    elif event.kind == EventKind.ERROR:
                        failure = event.data["failure"]
                        print(f"[{ts}] {name}: {failure['operation']} failed: {failure['message']}")
                    elif (
                        event.kind == EventKind.IMAGE_CAPTURED
                        and args.ask
                        and event.session_id not in asked
                    ):
                        asked.add(event.session_id)
                        task = asyncio.create_task(orchestrator.converse(event.session_id, args.ask))
                        questions.add(task)
                        task.add_done_callback(questions.discard)

            try:
                await asyncio.wait_for(consume(), timeout=args.duration)
            except asyncio.TimeoutError:
                pass

    print("\nStopped.")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the sightline CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from sightline.config.settings import load_settings
    from sightline.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "sources":
        asyncio.run(_list_sources(settings))

    elif args.command == "watch":
        logger.info("Starting watch")
        try:
            asyncio.run(_watch(settings, args))
        except KeyboardInterrupt:
            print("\nInterrupted.")

    elif args.command == "serve":
        from sightline.endpoint.server import serve
        from sightline.factory import build_orchestrator

        ep = settings.endpoint
        host = args.host or ep.host
        port = args.port or ep.port
        logger.info("Starting endpoint on %s:%d", host, port)
        serve(build_orchestrator(settings), host=host, port=port)


if __name__ == "__main__":
    main()
