#!/usr/bin/env python3
"""
Janitor Runner

Starts the cleanup worker that deletes expired, used and stale email
verification codes and password reset tokens from MongoDB.
"""

import argparse
import asyncio
import os
import sys

# Ensure project root is on the path
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT_DIR)

from workers.janitor_worker import run_janitor  # noqa: E402


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Credential cleanup worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single sweep and exit",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="seconds between sweeps (defaults to JANITOR_INTERVAL_SECONDS)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main function to start the janitor"""
    args = parse_args(argv)
    print("=" * 60)
    print("Starting credential janitor")
    print("=" * 60)

    try:
        result = asyncio.run(
            run_janitor(once=args.once, interval_seconds=args.interval)
        )
        if result is not None:
            print(f"Deleted {result.total} dead credentials")
    except KeyboardInterrupt:
        print("\nJanitor stopped by user")
    except Exception as e:
        print(f"\nJanitor failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
