"""CLI entrypoints for scaffoldgen commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml

from .config import ConfigError, load_config, load_integration_config
from .logging import configure_logging
from .models import ProjectRequest
from .orchestrator import GenerationOrchestrator
from .projection import ProgressTimeline, format_record
from .streaming.events import ProgressEvent


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_request_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", required=True, help="Project name.")
    parser.add_argument(
        "--requirements",
        required=True,
        help="Plain-language requirements for the application.",
    )
    parser.add_argument("--description", default="", help="Short project description.")
    parser.add_argument(
        "--integration",
        type=Path,
        default=None,
        help="YAML or JSON integration config; skips requirement analysis when given.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scaffoldgen",
        description="Generate frontend integration code from a project description.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Run the generation pipeline locally.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_request_options(generate_parser)
    generate_parser.add_argument(
        "--config",
        type=Path,
        default=Path("."),
        help="Directory or path of .scaffoldgen.yml (defaults to current directory).",
    )
    generate_parser.add_argument(
        "--show",
        action="store_true",
        help="Print the generated sources after the summary.",
    )

    stream_parser = subparsers.add_parser(
        "stream",
        help="Run a generation on a scaffoldgen service and follow its progress.",
    )
    _add_verbose_option(stream_parser, suppress_default=True)
    _add_request_options(stream_parser)
    stream_parser.add_argument(
        "--url",
        default="http://localhost:3000",
        help="Base URL of the scaffoldgen service.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default=None, help="Bind address (defaults to config).")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (defaults to config).")

    return parser


def _project_request(args: argparse.Namespace) -> ProjectRequest:
    integration = None
    if args.integration is not None:
        integration = load_integration_config(args.integration)
    return ProjectRequest(
        project_name=args.name,
        description=args.description,
        requirements=args.requirements,
        integration=integration,
    )


def _print_record(timeline: ProgressTimeline, event: ProgressEvent) -> None:
    record = timeline.apply(event)
    if record is not None:
        print(format_record(record))


class _TimelineSink:
    """Prints each event as it is applied to the local timeline."""

    def __init__(self, timeline: ProgressTimeline) -> None:
        self.timeline = timeline

    async def emit(self, event: ProgressEvent) -> None:
        _print_record(self.timeline, event)


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for scaffoldgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "generate":
        timeline = ProgressTimeline()
        try:
            config = load_config(args.config)
            request = _project_request(args)
            orchestrator = GenerationOrchestrator(config=config)
            result = asyncio.run(orchestrator.run(request, _TimelineSink(timeline)))
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"scaffoldgen generate failed: {exc}\nRun with --verbose for more details.\n")
        if not result.success:
            print(format_record(timeline.fail(result.error or "generation failed")))
            parser.exit(1, "Run with --verbose for more details.\n")
        artifacts = result.phases.get("generation", {}).get("artifacts", {})
        print(f"Generated {len(artifacts)} file(s) for {result.project_id}")
        for filename, source in artifacts.items():
            print(f"  {filename}")
            if getattr(args, "show", False):
                print(source)
                print()
    elif args.command == "stream":
        from .streaming.client import GenerationClient
        from .streaming.consumer import StreamErrorFrame, StreamTerminationError

        timeline = ProgressTimeline()
        try:
            request = _project_request(args)
            payload = {
                "projectName": request.project_name,
                "description": request.description,
                "requirements": request.requirements,
            }
            if args.integration is not None:
                payload["integration"] = _read_integration_payload(args.integration)
            client = GenerationClient(args.url)
            result = asyncio.run(
                client.generate_stream(payload, lambda event: _print_record(timeline, event))
            )
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        except (StreamErrorFrame, StreamTerminationError) as exc:
            print(format_record(timeline.fail(str(exc))))
            parser.exit(1, "Run with --verbose for more details.\n")
        except RuntimeError as exc:
            parser.exit(1, f"scaffoldgen stream failed: {exc}\n")
        print(f"Project {result.project_id}: {'succeeded' if result.success else 'failed'}")
    elif args.command == "serve":
        from .service import run_service

        try:
            config = load_config(Path.cwd())
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        run_service(args.host or config.service.host, args.port or config.service.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _read_integration_payload(path: Path) -> dict:
    # Callers validate the file through load_integration_config first.
    if path.suffix.lower() == ".json":
        return json.loads(path.read_text(encoding="utf-8"))
    return yaml.safe_load(path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    main(sys.argv[1:])
