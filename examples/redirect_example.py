#!/usr/bin/env python3
"""Example: following a MOVED redirect

This example shows how a caller reacts to a cluster MOVED reply by pointing
the connection manager at the new owner of a key, and how an after-open
listener re-runs per-connection setup on every (re)connect.
"""

from kvconn.infra.redis.connection import ConnectionManager
from kvconn.infra.redis.exceptions import KVConnError, RedirectError


def main() -> None:
    """Read a key, following one redirect if the store asks for it."""
    manager = ConnectionManager(
        hostname="localhost",  # Replace with your Redis node
        port=6379,
        database=None,  # Cluster nodes only accept database 0; skip SELECT
        retries=2,
        retry_interval=0.1,
    )

    # Runs after every successful open, including reconnects during retries
    manager.add_after_open_listener(
        lambda conn: conn.execute("client setname", "kvconn-example")
    )

    try:
        try:
            value = manager.get("user:42")
        except RedirectError as e:
            print(f"→ Key moved to {e.target} (slot {e.slot})")
            manager.set_redirect(e.target)
            value = manager.get("user:42")

        print(f"✓ user:42 = {value!r} via {manager.connection_string}")
        print(f"  Pooled connections: {list(manager.pool)}")

    except KVConnError as e:
        print(f"✗ Error: {e}")

    finally:
        # Closes pre- and post-redirect connections alike
        manager.close()


if __name__ == "__main__":
    main()
