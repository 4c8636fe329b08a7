#!/usr/bin/env python3
"""
cookie-auth -- Password login with signed, stateless session cookies.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 8080
  python main.py --reload
  python main.py --generate-secret

Environment variables (see core/config.py for the full list):
  SECRET_KEY    Session signing secret, at least 32 characters. Required
                unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL of the user database.
  DEBUG         Development mode; generates a throwaway SECRET_KEY.
"""

import argparse
import secrets

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="cookie-auth",
        description="Run the cookie-auth web server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  SECRET_KEY=$(python main.py --generate-secret) python main.py
  DEBUG=true python main.py --reload
        """,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart the server when source files change")
    parser.add_argument(
        "--generate-secret",
        action="store_true",
        help="Print a fresh random value for SECRET_KEY and exit",
    )
    args = parser.parse_args()

    if args.generate_secret:
        print(secrets.token_hex(32))
        return

    # Imported by string so uvicorn's reloader can re-import the app, and so
    # --generate-secret works before any SECRET_KEY exists.
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
