#!/usr/bin/env python3
"""Storefront lifecycle service - local server launcher."""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the storefront lifecycle API.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    uvicorn.run("src.api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
