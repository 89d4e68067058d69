#!/usr/bin/env python3
"""
hellomap Management CLI

Commands for the "say hello" automation:
- ensure-data: Create data/assets directories and a default ledger
- claim: Apply one claim from an issue, then regenerate the README
- migrate: Upgrade the ledger file to the current schema in place
- stats: Print the aggregated view
- render-readme: Regenerate README.md from README.tpl.md
- render-map: Regenerate the SVG world map
- format-title: Print the decorated issue title for a hello|XX issue

Usage:
    python -m hellomap.manage <command> [options]

Examples:
    ACTOR=octocat TITLE="hello|US" python -m hellomap.manage claim --flag-path /tmp/changed.flag
    python -m hellomap.manage stats --json
    python -m hellomap.manage format-title --title "hello|fr" --author octocat
"""

import argparse
import json
import os
import sys
from pathlib import Path

from hellomap.observability import get_logger, setup_logging

logger = get_logger("hellomap.manage")


def _boundary_names(config):
    from hellomap.render import country_names, load_boundaries

    return country_names(load_boundaries(config.geojson_path))


def cmd_ensure_data(args, config):
    """Create directories and the default ledger file."""
    from hellomap.db import ensure_data_files

    created = ensure_data_files(config)
    for path in created:
        print(f"[OK] Created {path}")
    print("[OK] All data directories and base files are ready")
    return 0


def cmd_claim(args, config):
    """Apply one claim and regenerate the README."""
    from hellomap.core import LedgerService, parse_city, parse_claim_title
    from hellomap.db import ConcurrencyError, create_store
    from hellomap.render import write_readme

    user = args.user or os.environ.get("ACTOR", "")
    title = args.title if args.title is not None else os.environ.get("TITLE", "")
    body = args.body if args.body is not None else os.environ.get("ISSUE_BODY", "")
    claimed_at = args.at or os.environ.get("EVENT_AT") or None

    iso = parse_claim_title(title)
    if iso is None:
        logger.info("Invalid ISO in title; expected hello|XX. No-op.", title=title)

    service = LedgerService(create_store(config))
    try:
        result, stats = service.submit_claim(
            user=user,
            country=iso or "",
            city=parse_city(body),
            claimed_at=claimed_at,
        )
    except ConcurrencyError as e:
        logger.error(str(e), user=user, iso=iso)
        return 1

    if args.flag_path:
        Path(args.flag_path).write_text("1" if result.changed else "", encoding="utf-8")

    print(f"Outcome: {result.outcome.value} (changed={str(result.changed).lower()})")

    if not args.skip_readme:
        write_readme(
            config.readme_template,
            config.readme_path,
            stats,
            names=_boundary_names(config),
            who_limit=config.who_limit,
        )
    return 0


def cmd_migrate(args, config):
    """Rewrite the ledger file in the current schema if it isn't already."""
    from hellomap.core import Hasher, is_recognized, migrate
    from hellomap.db import JsonFileLedgerStore

    store = JsonFileLedgerStore(config.data_path)
    raw = store.load_raw()

    if raw is None and store.path.exists():
        print(f"[FAIL] {config.data_path} is not readable JSON; leaving it untouched")
        return 1
    if not is_recognized(raw):
        print(f"[FAIL] {config.data_path} has an unrecognized shape; leaving it untouched")
        return 1

    ledger = migrate(raw)
    document = ledger.to_document()

    if isinstance(raw, dict) and Hasher.hash_data(raw) == Hasher.hash_data(document):
        print(f"[OK] {config.data_path} is already at schema version {ledger.schema_version}")
        return 0

    store.write_document(document)
    print(f"[OK] Migrated {config.data_path} to schema version {ledger.schema_version}")
    print(f"  Users: {len(ledger.users)}")
    print(f"  Countries: {len(ledger.countries)}")
    return 0


def cmd_stats(args, config):
    """Print aggregated stats."""
    from hellomap.core import LedgerService
    from hellomap.db import create_store

    stats = LedgerService(create_store(config)).stats()

    if args.json:
        print(json.dumps(stats.as_dict(), indent=2, ensure_ascii=False))
        return 0

    print(f"Total hellos: {stats.total_hellos}")
    print(f"Total countries: {stats.total_countries}")
    print(f"Updated at: {stats.updated_at or '-'}")
    for row in stats.countries:
        print(f"  {row.iso}  {row.count}")
    return 0


def cmd_render_readme(args, config):
    """Regenerate README.md without touching the ledger."""
    from hellomap.core import LedgerService
    from hellomap.db import create_store
    from hellomap.render import write_readme

    stats = LedgerService(create_store(config)).stats()
    write_readme(
        config.readme_template,
        config.readme_path,
        stats,
        names=_boundary_names(config),
        who_limit=config.who_limit,
    )
    return 0


def cmd_render_map(args, config):
    """Regenerate the SVG world map."""
    from hellomap.core import LedgerService
    from hellomap.db import create_store
    from hellomap.render import load_boundaries, write_map

    stats = LedgerService(create_store(config)).stats()
    output = args.output or config.map_path
    write_map(stats, load_boundaries(config.geojson_path), output)
    print(f"[OK] Built SVG at {output} (countries={stats.total_countries}, hellos={stats.total_hellos})")
    return 0


def cmd_format_title(args, config):
    """Print the decorated title, or fail if the title isn't hello|XX."""
    from hellomap.core import format_issue_title

    title = args.title if args.title is not None else os.environ.get("ISSUE_TITLE", "")
    author = args.author or os.environ.get("ISSUE_AUTHOR", "")

    new_title = format_issue_title(title, author)
    if new_title is None:
        logger.info('Title does not match pattern "hello|XX", skipping format', title=title)
        return 1

    print(new_title)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hellomap",
        description="hellomap Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser(
        "ensure-data",
        help="Create data directories and a default ledger file",
    )

    p_claim = subparsers.add_parser(
        "claim",
        help="Apply one hello|XX claim (defaults from ACTOR, TITLE, ISSUE_BODY, EVENT_AT)",
    )
    p_claim.add_argument("--user", help="Claimant login")
    p_claim.add_argument("--title", help='Issue title, e.g. "hello|US"')
    p_claim.add_argument("--body", help="Issue body, may contain a City: line")
    p_claim.add_argument("--at", help="Event timestamp (ISO-8601)")
    p_claim.add_argument("--flag-path", help="Write 1 (changed) or nothing (no-op) here")
    p_claim.add_argument("--skip-readme", action="store_true", help="Don't regenerate the README")

    subparsers.add_parser(
        "migrate",
        help="Upgrade the ledger file to the current schema",
    )

    p_stats = subparsers.add_parser(
        "stats",
        help="Print aggregated stats",
    )
    p_stats.add_argument("--json", action="store_true", help="Print as JSON")

    subparsers.add_parser(
        "render-readme",
        help="Regenerate README from its template",
    )

    p_map = subparsers.add_parser(
        "render-map",
        help="Regenerate the SVG world map",
    )
    p_map.add_argument("--output", "-o", help="Output file (default: HELLOMAP_MAP_PATH)")

    p_title = subparsers.add_parser(
        "format-title",
        help="Print the decorated issue title",
    )
    p_title.add_argument("--title", help="Issue title (default: ISSUE_TITLE)")
    p_title.add_argument("--author", help="Issue author (default: ISSUE_AUTHOR)")

    return parser


def main(argv=None):
    from hellomap.db import StoreConfig

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging()
    config = StoreConfig.from_env()

    commands = {
        "ensure-data": cmd_ensure_data,
        "claim": cmd_claim,
        "migrate": cmd_migrate,
        "stats": cmd_stats,
        "render-readme": cmd_render_readme,
        "render-map": cmd_render_map,
        "format-title": cmd_format_title,
    }

    return commands[args.command](args, config) or 0


if __name__ == "__main__":
    sys.exit(main())
