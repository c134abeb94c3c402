"""Command-line entry point.

Usage::

    create-scaffold new my-app --template owner/repo#main/templates/web
    create-scaffold new my-app --template ./local-template --yes --placeholder PROJECT_NAME=demo
    create-scaffold new my-app --template owner/repo --dry-run
    create-scaffold cache sweep
    create-scaffold cache refresh owner/repo --ttl 48
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from create_scaffold import __version__
from create_scaffold.cache import RepositoryCache
from create_scaffold.config import Config
from create_scaffold.errors import ScaffoldError
from create_scaffold.log import setup_logger
from create_scaffold.resolver import TemplateResolver
from create_scaffold.security import (
    sanitize_error_message,
    validate_cache_ttl,
    validate_ide,
    validate_project_directory,
)
from create_scaffold.utils import console, print_error, print_success
from create_scaffold.workflow import WorkflowOrchestrator
from create_scaffold.workflow.preview import print_plan


def _parse_placeholders(pairs: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ScaffoldError(
                f"Invalid placeholder override: {pair}",
                suggestions=["Use --placeholder NAME=value"],
            )
        values[name.strip()] = value
    return values


def build_cache(config: Config) -> RepositoryCache:
    return RepositoryCache(
        config.cache_dir,
        clone_timeout=config.cache.clone_timeout,
        access_check_timeout=config.cache.access_check_timeout,
        default_ttl_hours=config.cache.ttl_hours,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_new(args: argparse.Namespace, config: Config) -> int:
    project_dir = validate_project_directory(args.project)
    ttl = validate_cache_ttl(args.cache_ttl)
    ide = validate_ide(args.ide)
    placeholders = _parse_placeholders(args.placeholder or [])

    resolver = TemplateResolver(build_cache(config), aliases=config.templates)
    template = await resolver.resolve(
        args.template, branch=args.branch, no_cache=args.no_cache, ttl_hours=ttl
    )
    for name, value in template.parameters.items():
        placeholders.setdefault(name, value)

    workflow = WorkflowOrchestrator(
        config,
        project_directory=project_dir,
        template_path=template.path,
        template_name=args.template,
        metadata=template.metadata,
        placeholders=placeholders,
        options=args.option or [],
        selection_file=args.selection,
        ide=ide,
        repo_url=args.template,
        branch=args.branch,
    )
    if args.dry_run:
        print_plan(await workflow.preview())
        return 0
    result = await workflow.run()
    return 0 if result.success else 1


async def cmd_cache_sweep(args: argparse.Namespace, config: Config) -> int:
    removed = build_cache(config).sweep()
    print_success(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'}")
    return 0


async def cmd_cache_refresh(args: argparse.Namespace, config: Config) -> int:
    ttl = validate_cache_ttl(args.ttl)
    path = await build_cache(config).refresh(args.source, args.branch, ttl_hours=ttl)
    print_success(f"Refreshed {args.source} -> {path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="create-scaffold",
        description="Create a project from a template repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  create-scaffold new my-app --template owner/repo\n"
            "  create-scaffold new my-app --template owner/repo#main/templates/web --ide vscode\n"
            "  create-scaffold cache sweep\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON config file")

    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Create a new project")
    new.add_argument("project", help="Project directory to create")
    new.add_argument("--template", "-t", required=True, help="Template identifier")
    new.add_argument("--branch", "-b", default=None, help="Git branch to use")
    new.add_argument("--no-cache", action="store_true", help="Bypass the repository cache")
    new.add_argument("--cache-ttl", default=None, help="Cache TTL in hours (1-720)")
    new.add_argument("--selection", default=None, help="Path to a *.selection.json file")
    new.add_argument(
        "--option", "-o", action="append", metavar="DIM=VALUE", help="Select a dimension value"
    )
    new.add_argument(
        "--placeholder", "-p", action="append", metavar="NAME=VALUE", help="Placeholder value"
    )
    new.add_argument("--ide", default=None, help="Apply an editor preset (kiro, vscode, cursor, windsurf)")
    new.add_argument(
        "--yes", "-y", action="store_true", help="Never prompt; use defaults and auto-recovery"
    )
    new.add_argument(
        "--dry-run", "-d", action="store_true", help="Show what would be created without writing anything"
    )
    new.set_defaults(handler=cmd_new)

    cache = sub.add_parser("cache", help="Manage the repository cache")
    cache_sub = cache.add_subparsers(dest="cache_command", required=True)

    sweep = cache_sub.add_parser("sweep", help="Remove expired and corrupted entries")
    sweep.set_defaults(handler=cmd_cache_sweep)

    refresh = cache_sub.add_parser("refresh", help="Re-clone a cached repository")
    refresh.add_argument("source", help="Repository (owner/repo or URL)")
    refresh.add_argument("--branch", "-b", default=None)
    refresh.add_argument("--ttl", default=None, help="New TTL in hours")
    refresh.set_defaults(handler=cmd_cache_refresh)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``create-scaffold``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logger(verbose=args.verbose)

    try:
        config = Config.from_env(Config.load(args.config)) if args.config else Config.discover()
        if getattr(args, "yes", False):
            config.workflow.interactive = False
        code = asyncio.run(args.handler(args, config))
    except ScaffoldError as exc:
        print_error(f"Error: {sanitize_error_message(exc.message)}")
        for suggestion in exc.suggestions:
            console.print(f"  - {suggestion}", markup=False)
        sys.exit(1)
    except KeyboardInterrupt:
        print_error("Interrupted.")
        sys.exit(130)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
