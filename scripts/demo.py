"""Run a primary and a replica side by side.

The primary listens on :8081 and serves the Store contract; the replica
listens on :8080 and delegates to it. Press Enter to stop both.

Usage:
    python scripts/demo.py [--file file/store.json]
"""

import argparse
import subprocess
import sys
import time


def main() -> None:
    parser = argparse.ArgumentParser(description="Launch a primary and a replica")
    parser.add_argument("--file", default="file/store.json", help="Primary data store file")
    parser.add_argument("--primary", default=":8081", help="Primary listen address")
    parser.add_argument("--replica", default=":8080", help="Replica listen address")
    args = parser.parse_args()

    primary_port = args.primary.rpartition(":")[2]
    replica_port = args.replica.rpartition(":")[2]
    primary = subprocess.Popen(
        [sys.executable, "-m", "urlstore", "--http", args.primary, "--file", args.file, "--rpc"]
    )
    time.sleep(1)
    replica = subprocess.Popen(
        [
            sys.executable,
            "-m",
            "urlstore",
            "--http",
            args.replica,
            "--master",
            f"127.0.0.1:{primary_port}",
            "--host",
            f"localhost:{replica_port}",
        ]
    )

    print(f"Running primary on {args.primary}, replica on {args.replica}.")
    print(f"Visit: http://localhost:{replica_port}/add")
    print("Press enter to shut down")
    try:
        input()
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        for process in (replica, primary):
            process.terminate()
        for process in (replica, primary):
            process.wait(timeout=10)


if __name__ == "__main__":
    main()
