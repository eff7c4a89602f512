from __future__ import annotations

import argparse
import os
import re
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

DEFAULT_TIMEOUT = 5 * 60.0

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 8000
    document: Path = Path("programs.json")
    backup_dir: Path = Path("backup")
    public_dir: Path = Path("public")
    endpoint: str = "/programs"
    timeout: float = DEFAULT_TIMEOUT
    reject_duplicate_keys: bool = True
    log_level: str = "INFO"


def parse_duration(text: str) -> float:
    """Parse durations like ``3s``, ``5m10s``, ``1.5h`` or ``250ms`` into seconds."""
    s = text.strip()
    if s.startswith("+"):
        s = s[1:]
    if s == "0":
        return 0.0
    if not s:
        raise ValueError(f"invalid duration {text!r}")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _PART.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration {text!r}")
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()
    return total


def parse_address(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address {addr!r}, expected host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "0.0.0.0", int(port)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Edit programs.json over HTTP, one person at a time")
    parser.add_argument("--addr", default=os.getenv("PROGRAMS_ADDR", "127.0.0.1:8000"),
                        help="server address (host:port)")
    parser.add_argument("--file", default=os.getenv("PROGRAMS_FILE", "./programs.json"),
                        help="path to programs.json")
    parser.add_argument("--backup", default=os.getenv("PROGRAMS_BACKUP_DIR", "./backup"),
                        help="path to backup directory")
    parser.add_argument("--timeout", default=os.getenv("PROGRAMS_TIMEOUT", "5m"),
                        help="session timeout, i.e 3s, 5m10s, etc..")
    parser.add_argument("--public", default=os.getenv("PROGRAMS_PUBLIC_DIR", "./public"),
                        help="directory with the editor front end")
    parser.add_argument("--endpoint", default="/programs", help="path of the document endpoint")
    parser.add_argument("--allow-duplicate-keys", action="store_true",
                        default=_env_flag("PROGRAMS_ALLOW_DUPLICATE_KEYS"),
                        help="let later records overwrite earlier ones with the same key")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    return parser


def load_settings(argv: list[str] | None = None) -> Settings:
    args = build_parser().parse_args(argv)

    try:
        host, port = parse_address(args.addr)
    except ValueError as exc:
        raise SystemExit(f"--addr: {exc}")

    try:
        timeout = parse_duration(args.timeout)
    except ValueError as exc:
        logger.warning(f"Failed to parse session time, falling back to 5m: {exc}")
        timeout = DEFAULT_TIMEOUT

    endpoint = args.endpoint if args.endpoint.startswith("/") else "/" + args.endpoint
    return Settings(
        host=host,
        port=port,
        document=Path(args.file),
        backup_dir=Path(args.backup),
        public_dir=Path(args.public),
        endpoint=endpoint,
        timeout=timeout,
        reject_duplicate_keys=not args.allow_duplicate_keys,
        log_level=args.log_level.upper(),
    )
