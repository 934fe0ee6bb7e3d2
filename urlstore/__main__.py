"""Command-line entry point.

Usage:
    python -m urlstore --http :8081                          # primary
    python -m urlstore --master 127.0.0.1:8081 --http :8080  # replica

Flags left out fall back to the environment / .env (see urlstore.config).
"""

import argparse

import uvicorn

from urlstore.config import Settings
from urlstore.main import create_app

__all__ = ["main", "parse_args", "settings_from_args"]


def _listen_addr(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep:
        host, port = "", value
    try:
        port_number = int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid listen address {value!r}, expected [host]:port") from None
    if not 0 < port_number < 65536:
        raise argparse.ArgumentTypeError(f"port out of range in {value!r}")
    return host, port_number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="urlstore", description="Short key to URL store")
    parser.add_argument("--http", type=_listen_addr, default=None, help="HTTP listen address, e.g. :8080")
    parser.add_argument("--file", default=None, help="Data store file name")
    parser.add_argument("--host", default=None, help="Host name used in returned short URLs")
    parser.add_argument("--master", default=None, help="Primary address; makes this process a replica")
    parser.add_argument(
        "--rpc",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Serve the Store.Get / Store.Put contract",
    )
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.http is not None:
        host, port = args.http
        if host:
            overrides["HTTP_HOST"] = host
        overrides["HTTP_PORT"] = port
    if args.file is not None:
        overrides["DATA_FILE"] = args.file
    if args.host is not None:
        overrides["PUBLIC_HOST"] = args.host
    if args.master is not None:
        overrides["MASTER_ADDR"] = args.master
    if args.rpc is not None:
        overrides["RPC_ENABLED"] = args.rpc
    return Settings(**overrides)


def main(argv: list[str] | None = None) -> None:
    settings = settings_from_args(parse_args(argv))
    uvicorn.run(
        create_app(settings),
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
