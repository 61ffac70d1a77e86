import argparse
import logging
import socket
from pathlib import Path

import uvicorn

from noc2go.config import settings
from noc2go.core.errors import InvalidInput
from noc2go.main import app, build_resolver
from noc2go.models.config import ConfigStore
from noc2go.services.dns_lookup import normalize_server

logger = logging.getLogger("noc2go")


def port_available(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("", port))
        except OSError:
            return False
    return True


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("", 0))
        return sock.getsockname()[1]


def choose_port(requested: int) -> int:
    """The requested port, else the default, else any free port."""
    if requested > 0 and port_available(requested):
        return requested
    if port_available(settings.DEFAULT_PORT):
        return settings.DEFAULT_PORT
    return free_port()


def first_non_loopback_ip() -> str:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            # No packet is sent; this only picks the outbound interface
            sock.connect(("192.0.2.1", 9))
            return sock.getsockname()[0]
        except OSError:
            return "localhost"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{settings.APP_NAME} network diagnostics dashboard")
    parser.add_argument("--config", default=settings.CONFIG_PATH, help="path to YAML config")
    parser.add_argument("--host", default="0.0.0.0", help="listen address")
    parser.add_argument("--port", type=int, default=0, help="TCP port; 0 = configured, default or next free")
    parser.add_argument("--password", default=None, help="admin password (only used on first run)")
    parser.add_argument("--privileged", action="store_true", help="allow privileged ping options")
    parser.add_argument(
        "--dns-server", action="append", default=[], metavar="IP[:PORT]",
        help="DNS server to save (repeatable)",
    )
    parser.add_argument("--ssl-certfile", default=None)
    parser.add_argument("--ssl-keyfile", default=None)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings.CONFIG_PATH = args.config
    if args.privileged:
        settings.PRIVILEGED = True

    if Path(args.config).exists():
        store = ConfigStore.load_or_init(args.config)
        port = choose_port(args.port or store.config.server.port)
    else:
        port = choose_port(args.port)
        store = ConfigStore.load_or_init(args.config, port=port, password=args.password)

    if args.dns_server:
        try:
            added = store.merge_dns_servers([normalize_server(s) for s in args.dns_server])
        except InvalidInput as exc:
            raise SystemExit(f"invalid --dns-server: {exc}")
        if added:
            logger.info("Saved DNS servers from command line: %s", ", ".join(added))

    app.state.config_store = store
    app.state.dns_resolver = build_resolver()

    scheme = "https" if args.ssl_certfile and args.ssl_keyfile else "http"
    print(f"[{settings.APP_NAME}]   {scheme.upper():<6} : {scheme}://{first_non_loopback_ip()}:{port}")
    if store.created:
        print(f"[{settings.APP_NAME}]   LOGIN  : admin / {store.initial_password}")
    else:
        print(f"[{settings.APP_NAME}]   LOGIN  : use credentials from {args.config}")

    uvicorn.run(
        app,
        host=args.host,
        port=port,
        log_level="info",
        ssl_certfile=args.ssl_certfile,
        ssl_keyfile=args.ssl_keyfile,
    )


if __name__ == "__main__":
    main()
