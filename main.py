#!/usr/bin/env python3
"""
Expensage: launch the web GUI.

Usage:
    python main.py                          # http://localhost:8000
    python main.py --port 9000              # http://localhost:9000
    python main.py --host 0.0.0.0           # listen on all interfaces
    python main.py --token-file token.txt   # start with a MotherDuck session
    python main.py --database my_expenses   # use another database name
    python main.py --reload                 # auto-reload on code changes
"""

from __future__ import annotations

import argparse
import os
import sys
import webbrowser
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Launch the Expensage web interface.",
    )
    parser.add_argument(
        "--host", default=os.getenv("APP_HOST", "127.0.0.1"),
        help="Bind address (default: 127.0.0.1 or APP_HOST env var)",
    )
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
        help="Port to listen on (default: 8000 or APP_PORT env var)",
    )
    parser.add_argument(
        "--database", default=None,
        help="Database holding the expense table (default: expensage_backend "
             "or EXPENSAGE_DATABASE env var)",
    )
    parser.add_argument(
        "--token-file", type=Path, default=None,
        help="Text file containing only the MotherDuck token",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )
    parser.add_argument(
        "--no-browser", action="store_true",
        help="Don't open a browser window automatically",
    )
    args = parser.parse_args()

    if args.database is not None:
        os.environ["EXPENSAGE_DATABASE"] = args.database

    if args.token_file is not None:
        from api.routes.session import read_token_file

        try:
            token = read_token_file(args.token_file.read_bytes())
        except (OSError, ValueError) as exc:
            print(f"Error: cannot read token from {args.token_file}: {exc}")
            sys.exit(1)
        os.environ["MOTHERDUCK_TOKEN"] = token

    if not os.getenv("MOTHERDUCK_TOKEN"):
        print("No MotherDuck token configured; enter one in the browser.")
        print()

    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is not installed.")
        print("  pip install uvicorn[standard]")
        sys.exit(1)

    url = f"http://{'localhost' if args.host == '0.0.0.0' else args.host}:{args.port}"
    print(f"Starting Expensage at {url}")
    print(f"Database: {os.getenv('EXPENSAGE_DATABASE', 'expensage_backend')}")
    print()

    if not args.no_browser:
        # Open browser after a short delay to let the server start
        import threading
        threading.Timer(1.5, webbrowser.open, args=(url,)).start()

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
