"""CLI entrypoints for dashgen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, DashgenConfig, load_config
from .errors import DashgenError
from .generator import GenerationReport, Generator
from .loader import load_dashboard
from .logging import configure_logging
from .pages import Dashboard


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


def _add_script_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "script",
        type=Path,
        help="Python file defining a module-level `dashboard`.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dashgen",
        description="Compile declarative dashboard specifications into Quarto sites.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate every stale page of a dashboard.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_script_argument(generate_parser)
    generate_parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Override the dashboard's output directory.",
    )
    generate_parser.add_argument(
        "--no-incremental",
        dest="incremental",
        action="store_false",
        default=None,
        help="Ignore the build manifest and regenerate every page.",
    )
    generate_parser.add_argument(
        "--render",
        action="store_true",
        default=None,
        help="Run `quarto render` for each regenerated page.",
    )
    generate_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Regenerate stale pages on this many threads.",
    )

    preview_parser = subparsers.add_parser(
        "preview",
        help="Write inspection files for selected pages without touching the build.",
    )
    _add_verbose_option(preview_parser, suppress_default=True)
    _add_script_argument(preview_parser)
    preview_parser.add_argument("pages", nargs="+", help="Page names to preview.")

    tree_parser = subparsers.add_parser(
        "tree",
        help="Print the tabgroup tree of every page.",
    )
    _add_verbose_option(tree_parser, suppress_default=True)
    _add_script_argument(tree_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for dashgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    verbose = bool(args.verbose)

    if args.command == "serve":
        configure_logging(verbose=verbose, log_file=args.log_file)
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
        return

    try:
        config = load_config(args.script)
    except ConfigError as exc:
        configure_logging(verbose=verbose, log_file=args.log_file)
        parser.exit(1, f"{exc}\n")
    configure_logging(
        verbose=verbose,
        level=config.logging.level,
        log_file=args.log_file or config.logging.file,
    )
    generator = Generator.from_config(config)

    try:
        dashboard = load_dashboard(args.script)
        if args.command == "tree":
            for name, text in generator.tree_text(dashboard).items():
                print(name)
                print(text)
                print()
            return
        if args.command == "preview":
            report = generator.generate(dashboard, preview=args.pages)
        else:
            report = _run_generate(generator, dashboard, args, config)
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    except DashgenError as exc:
        parser.exit(1, f"dashgen {args.command} failed: {exc}\nRun with --verbose for more details.\n")

    print(report.summary())
    for name in report.previewed:
        print(f"Preview written to {_relativize(report.artifacts[name])}")
    if not report.ok:
        parser.exit(1)


def _run_generate(
    generator: Generator,
    dashboard: Dashboard,
    args: argparse.Namespace,
    config: DashgenConfig,
) -> GenerationReport:
    settings = config.build.overridden(
        incremental=args.incremental,
        render=args.render,
        workers=args.workers,
        output_dir=args.output_dir,
    )
    return generator.generate(dashboard, **settings)


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


__all__ = ["main"]


if __name__ == "__main__":
    main(sys.argv[1:])
