# contentmill/cli/pipeline.py
"""
CLI for the content pipeline, used by the external scheduler.

Usage:
    python -m contentmill.cli.pipeline init-db
    python -m contentmill.cli.pipeline fetch --site my-site
    python -m contentmill.cli.pipeline rewrite --site my-site --limit 5
    python -m contentmill.cli.pipeline run-scheduled
"""

import argparse
import json
import sys

from dotenv import load_dotenv

load_dotenv()


def get_db_session():
    """Get a database session."""
    from contentmill.database import SessionLocal

    return SessionLocal()


def _setup_logging():
    from contentmill.config import get_settings
    from contentmill.logging_config import configure_logging

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _load_site(db, ident: str):
    from contentmill.pipeline import resolve_site

    site = resolve_site(db, ident)
    if site is None:
        print(f"Site not found: {ident}", file=sys.stderr)
        sys.exit(1)
    return site


def cmd_init_db(args):
    """Create all tables."""
    from contentmill.database import init_db

    init_db()
    _print({"status": "ok"})


def cmd_fetch(args):
    """Fetch new articles from a site's sources."""
    from contentmill.pipeline import build_services, run_fetch_job

    db = get_db_session()
    try:
        site = _load_site(db, args.site)
        with build_services() as services:
            stats = run_fetch_job(db, site, services=services)
        _print(stats.to_dict())
    finally:
        db.close()


def cmd_rewrite(args):
    """Rewrite and publish pending articles for a site."""
    from contentmill.pipeline import build_services, run_rewrite_job

    db = get_db_session()
    try:
        site = _load_site(db, args.site)
        with build_services() as services:
            stats = run_rewrite_job(db, site, limit=args.limit, services=services)
        _print(stats.to_dict())
    finally:
        db.close()


def cmd_run_scheduled(args):
    """Fetch and rewrite every active, cron-enabled site."""
    from contentmill.pipeline import build_services, run_scheduled

    db = get_db_session()
    try:
        with build_services() as services:
            summary = run_scheduled(db, services=services)
        _print(summary)
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="ContentMill pipeline CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Harvest one site's feeds and sitemaps
  python -m contentmill.cli.pipeline fetch --site my-site

  # Publish up to 5 pending articles
  python -m contentmill.cli.pipeline rewrite --site my-site --limit 5
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    fetch_parser = subparsers.add_parser("fetch", help="Fetch sources for a site")
    fetch_parser.add_argument("--site", required=True, help="Site id or slug")
    fetch_parser.set_defaults(func=cmd_fetch)

    rewrite_parser = subparsers.add_parser("rewrite", help="Rewrite pending articles for a site")
    rewrite_parser.add_argument("--site", required=True, help="Site id or slug")
    rewrite_parser.add_argument("--limit", type=int, default=None,
                                help="Max articles (default: site articles_per_day)")
    rewrite_parser.set_defaults(func=cmd_rewrite)

    scheduled_parser = subparsers.add_parser("run-scheduled", help="Run the cron pipeline for all sites")
    scheduled_parser.set_defaults(func=cmd_run_scheduled)

    args = parser.parse_args(argv)
    _setup_logging()
    args.func(args)


if __name__ == "__main__":
    main()
