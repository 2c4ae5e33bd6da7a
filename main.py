#!/usr/bin/env python3
"""
Tradepost -- accounts, sessions and owner-guarded product listings.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py purge-sessions

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Defaults to tradepost.db next to this file.
  ENVIRONMENT    development (default) or production.
"""

import argparse

from core.config import get_settings


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


def _purge_sessions(args: argparse.Namespace) -> None:
    from auth.session_store import SessionStore
    from core.database import create_db_engine

    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    try:
        removed = SessionStore(engine, ttl=settings.session_ttl_seconds).purge_expired()
    finally:
        engine.dispose()
    print(f"  Purged {removed} expired session(s).")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="tradepost",
        description="Tradepost API server and maintenance commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --port 8080 --reload
  python main.py purge-sessions
        """,
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = commands.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(handler=_serve)

    purge = commands.add_parser("purge-sessions", help="Delete expired session records and exit")
    purge.set_defaults(handler=_purge_sessions)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return
    args.handler(args)


if __name__ == "__main__":
    main()
