"""Startup configuration for the vote server.

Precedence: command-line flags, then environment variables, then defaults.

Environment:
- VOTE_HOST
- VOTE_PORT
- VOTE_CANDIDATES (comma separated)
- VOTE_PORT_RETRIES
- VOTE_LOG_LEVEL
"""

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from ballot.errors import ConfigError

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 7004
DEFAULT_CANDIDATES = ["Candidate A", "Candidate B", "Candidate C"]
DEFAULT_PORT_RETRIES = 10
DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    candidates: List[str] = field(default_factory=lambda: list(DEFAULT_CANDIDATES))
    port_retries: int = DEFAULT_PORT_RETRIES
    log_level: str = DEFAULT_LOG_LEVEL


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Real-time voting server over WebSocket")
    parser.add_argument("--host", default=None, help=f"Interface to bind (default: {DEFAULT_HOST})")
    parser.add_argument("--port", default=None, help=f"First port to try (default: {DEFAULT_PORT})")
    parser.add_argument(
        "--candidate",
        dest="candidates",
        action="append",
        default=None,
        help="Candidate name, repeat for each one, in ballot order",
    )
    parser.add_argument(
        "--port-retries",
        default=None,
        help=f"How many following ports to try when the port is taken (default: {DEFAULT_PORT_RETRIES})",
    )
    parser.add_argument("--log-level", default=None, help=f"Logging level (default: {DEFAULT_LOG_LEVEL})")
    return parser


def _parse_int(value: str, name: str, minimum: int, maximum: Optional[int] = None) -> int:
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if number < minimum or (maximum is not None and number > maximum):
        raise ConfigError(f"{name} out of range: {number}")
    return number


def _parse_candidates(values: Sequence[str]) -> List[str]:
    names = [v.strip() for v in values]
    if any(not n for n in names):
        raise ConfigError("Candidate names must not be blank")
    return names


def load_config(argv: Optional[Sequence[str]] = None, env: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build a ServerConfig from `argv` and `env` (defaults: sys.argv / os.environ).

    Raises ConfigError on unusable values. Duplicate or empty candidate lists
    are rejected later, when the tally store is built from them.
    """
    if env is None:
        env = os.environ
    args = build_parser().parse_args(argv)

    config = ServerConfig()

    host = args.host if args.host is not None else env.get("VOTE_HOST")
    if host:
        config.host = host

    port = args.port if args.port is not None else env.get("VOTE_PORT")
    if port is not None:
        config.port = _parse_int(port, "port", 0, 65535)

    retries = args.port_retries if args.port_retries is not None else env.get("VOTE_PORT_RETRIES")
    if retries is not None:
        config.port_retries = _parse_int(retries, "port retries", 0)

    if args.candidates is not None:
        config.candidates = _parse_candidates(args.candidates)
    elif env.get("VOTE_CANDIDATES") is not None:
        config.candidates = _parse_candidates(env["VOTE_CANDIDATES"].split(","))

    level = args.log_level if args.log_level is not None else env.get("VOTE_LOG_LEVEL")
    if level:
        config.log_level = level.strip().upper()
        if not isinstance(logging.getLevelName(config.log_level), int):
            raise ConfigError(f"Unknown log level: {level!r}")

    return config
