"""
Command-line entrypoint: process an exported activity file.

The HTTP API runs separately under uvicorn.

Usage:
    python -m fitstream process ride.json --mode derived
    python -m fitstream process ride.json --mode ai-summary --prompt "How was my pacing?"
    python -m fitstream process ride.json --mode raw --page 2 --page-size 500
    python -m fitstream modes
    uvicorn fitstream.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


async def _process(args: argparse.Namespace) -> int:
    from fitstream.config import get_settings
    from fitstream.processing.errors import ProcessingError
    from fitstream.processing.factory import build_dispatcher
    from fitstream.processing.models import ProcessingParams, ProcessingRequest
    from fitstream.processing.pagination import PaginationCoordinator
    from fitstream.render.pages import format_paginated_result
    from fitstream.sources.json_source import JsonFileDataSource

    settings = get_settings()
    source = JsonFileDataSource(args.file)
    dispatcher = build_dispatcher(settings)
    activity_id = args.activity_id or source.activity_id

    try:
        if args.page is not None or args.page_size is not None:
            series = source.series()
            request = ProcessingRequest(
                activity_id=activity_id,
                mode=args.mode,
                channels=args.channels or series.available_channels(),
                resolution=args.resolution,
                page_number=args.page or 1,
                page_size=args.page_size,
                summary_prompt=args.prompt,
            )
            coordinator = PaginationCoordinator(source, dispatcher, settings.stream)
            page = await coordinator.process_paginated_request(settings.user_id, request)
            print(format_paginated_result(page))
            return 0

        params = ProcessingParams(
            activity_id=activity_id,
            summary_prompt=args.prompt,
            laps=source.laps() or None,
        )
        result = await dispatcher.dispatch(args.mode, source.series(), params)
    except ProcessingError as exc:
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 2

    print(result.content)
    return 1 if result.error else 0


def _list_modes() -> int:
    from fitstream.processing.modes import get_supported_modes
    print("\n".join(get_supported_modes()))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(prog="fitstream", description="Process activity telemetry")
    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="Process an exported activity file")
    process.add_argument("file", type=Path, help="JSON file with activity streams")
    process.add_argument("--mode", default="auto", help="auto | raw | derived | ai-summary")
    process.add_argument("--prompt", default="", help="Question for ai-summary mode")
    process.add_argument("--activity-id", type=int, default=None)
    process.add_argument("--page", type=int, default=None, help="Page number (enables pagination)")
    process.add_argument("--page-size", type=int, default=None, help="Samples per page; -1 for all")
    process.add_argument("--resolution", default="high", help="low | medium | high")
    process.add_argument("--channels", nargs="*", default=None, help="Channel keys to include")

    sub.add_parser("modes", help="List supported processing modes")

    args = parser.parse_args()

    from fitstream.config import get_settings
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "modes":
        sys.exit(_list_modes())
    sys.exit(asyncio.run(_process(args)))


if __name__ == "__main__":
    main()
