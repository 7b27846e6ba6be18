"""CLI entry point: python -m templatefetcher {fetch,serve} [options]"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from templatefetcher.config import LAYOUTS, FetcherConfig, ServerConfig
from templatefetcher.errors import ExtractionFailure, TemplateFetchError, ValidationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="templatefetcher",
        description=(
            "Render 135editor template preview pages in headless Chromium\n"
            "and print the template's HTML."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--profile", default=None, metavar="FILE",
                        help="YAML profile with FetcherConfig settings")
    parser.add_argument("--log-level", default=None, choices=_LOG_LEVELS,
                        metavar="{DEBUG,INFO,WARNING,ERROR}",
                        help="Logging level (default: WARNING for fetch, INFO for serve)")
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Fetch one template and print its HTML")
    fetch.add_argument("--id", required=True, dest="template_id", metavar="ID",
                       help="Numeric template id, e.g. 169311")
    fetch.add_argument("--out", default=None, metavar="FILE",
                       help="Write HTML to FILE instead of stdout")
    fetch.add_argument("--layout", default=None, choices=sorted(LAYOUTS),
                       help="Named selector layout")
    fetch.add_argument("--selector", action="append", default=None, metavar="CSS",
                       help="Candidate selector (repeatable, in priority order); overrides --layout")
    fetch.add_argument("--settle-ms", type=int, default=None, metavar="MS",
                       help="Extra wait after DOM content loaded")
    fetch.add_argument("--network-idle", action="store_true", default=False,
                       help="Also wait for network idle (tolerates sites that never idle)")
    fetch.add_argument("--chrome-path", default=None, metavar="PATH",
                       help="Browser executable (default: CHROME_PATH or bundled Chromium)")
    fetch.add_argument("--quiet", action="store_true", default=False,
                       help="Do not print the summary panel")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Listen address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None,
                       help="Listen port (default: PORT or 10000)")
    return parser


def _load_config(args: argparse.Namespace) -> FetcherConfig:
    config = FetcherConfig.from_env(profile=args.profile)
    if args.command != "fetch":
        return config
    return config.with_overrides(
        layout=args.layout,
        selectors=tuple(args.selector) if args.selector else None,
        settle_delay_ms=args.settle_ms,
        wait_for_network_idle=True if args.network_idle else None,
        chrome_path=args.chrome_path,
    )


def _print_summary(result, out: str | None) -> None:
    from rich.console import Console
    from rich.panel import Panel

    console = Console(stderr=True)
    console.print(
        Panel.fit(
            f"[bold cyan]Template {result.template_id}[/bold cyan]\n"
            f"URL:       [green]{result.target_url}[/green]\n"
            f"Selector:  [yellow]{result.selector}[/yellow]\n"
            f"Frame:     {result.frame_url or '(main document)'}\n"
            f"Length:    {len(result.html)} chars\n"
            f"Elapsed:   {result.elapsed_ms} ms\n"
            f"Output:    {out or 'stdout'}",
            border_style="cyan",
        ),
    )


def _print_error(exc: TemplateFetchError) -> None:
    from rich.console import Console

    console = Console(stderr=True)
    console.print(f"[bold red]ERROR:[/bold red] {exc}")
    if exc.target_url:
        console.print(f"  target URL:  {exc.target_url}")
    if isinstance(exc, ExtractionFailure):
        console.print(f"  diagnosis:   {exc.diagnosis or '-'}")
        tried = exc.tried_frame_url
        console.print(f"  frame tried: {'none' if tried is None else tried or '<blank>'}")


def _cmd_fetch(args: argparse.Namespace, config: FetcherConfig) -> int:
    from templatefetcher.extractor import TemplateExtractor

    try:
        result = TemplateExtractor(config).fetch(args.template_id)
    except ValidationError as exc:
        _print_error(exc)
        return 2
    except TemplateFetchError as exc:
        _print_error(exc)
        return 1

    if args.out:
        Path(args.out).write_text(result.html + "\n", encoding="utf-8")
    else:
        sys.stdout.write(result.html + "\n")
        sys.stdout.flush()
    if not args.quiet:
        _print_summary(result, args.out)
    return 0


def _cmd_serve(args: argparse.Namespace, config: FetcherConfig, server: ServerConfig) -> int:
    from templatefetcher.web import create_app

    host = args.host or server.host
    port = args.port or server.port
    app = create_app(fetcher_config=config)
    logger.info("Server is running on %s:%d", host, port)
    app.run(host=host, port=port, threaded=True)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        server = ServerConfig.from_env()
        config = _load_config(args)
    except (ValueError, OSError) as exc:
        print(f"ERROR: invalid configuration: {exc}", file=sys.stderr)
        return 1

    level = args.log_level or ("WARNING" if args.command == "fetch" else server.log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "fetch":
        return _cmd_fetch(args, config)
    return _cmd_serve(args, config, server)


if __name__ == "__main__":
    sys.exit(main())
