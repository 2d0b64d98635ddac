"""Check reachability of the configured Redis endpoint.

Purpose:
    Quick developer sanity check that settings resolve to a reachable Redis
    server, that AUTH/SELECT succeed, and that commands round-trip.

When to use:
    - After editing a config file or KVCONN_* environment variables
    - During local development to verify settings and networking

Usage:
    python scripts/check_connectivity.py [--config config/lab.yaml]

Exit codes:
    0 on success; 1 if the endpoint is unreachable or rejects the setup.
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from kvconn.config import Settings, load_settings_from_file
from kvconn.infra.redis.connection import ConnectionManager
from kvconn.infra.redis.exceptions import KVConnError


def check_endpoint(settings: Settings) -> None:
    """Open a connection and time a PING."""
    with ConnectionManager.from_settings(settings) as manager:
        print(f"Checking connectivity for {manager.connection_string}...")
        started = time.perf_counter()
        reply = manager.ping()
        latency_ms = (time.perf_counter() - started) * 1000
        print(f"Reachable: {reply}")
        print(f"Database: {manager.database}")
        print(f"Latency: {latency_ms:.1f} ms")


def main() -> int:
    parser = argparse.ArgumentParser(description="Check Redis connectivity")
    parser.add_argument("--config", help="Path to config file (defaults to environment)")
    args = parser.parse_args()

    try:
        settings = load_settings_from_file(args.config) if args.config else Settings()
        check_endpoint(settings)
        return 0
    except (KVConnError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
