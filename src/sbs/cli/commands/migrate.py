"""
sbs migrate command.

SUMMARY: Upgrade pre-namespacing session records and consolidate legacy stores
"""

from __future__ import annotations

import argparse
import sys

from sbs.cli import OutputFormatter, add_dry_run_flag, add_json_flag

SUMMARY = "Upgrade pre-namespacing session records and consolidate legacy stores"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_dry_run_flag(parser)
    parser.add_argument(
        "--no-consolidate",
        dest="consolidate",
        action="store_false",
        help="Do not copy legacy per-repository records into the global store",
    )
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from sbs.core.session import SessionStore

    store = SessionStore()
    scopes = [None, *store.legacy_scopes()]
    per_scope = []
    for scope in scopes:
        label = str(store.path_for(scope))
        count = store.pending_migrations(scope) if args.dry_run else store.migrate(scope)
        per_scope.append({"store": label, "records": count})

    consolidated = 0
    if args.consolidate and not args.dry_run:
        consolidated = store.consolidate_legacy()

    total = sum(item["records"] for item in per_scope)
    verb = "Would migrate" if args.dry_run else "Migrated"
    lines = [f"{verb} {total} record(s)"]
    lines.extend(f"  {item['store']}: {item['records']}" for item in per_scope if item["records"])
    if consolidated:
        lines.append(f"Copied {consolidated} legacy record(s) into {store.canonical_path}")
    formatter.success(
        {"dry_run": bool(args.dry_run), "migrated": total, "stores": per_scope, "consolidated": consolidated},
        "\n".join(lines),
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
