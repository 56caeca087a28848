"""Operator check for the list-link service environment.

``check`` loads ``AppSettings`` from a ``.env`` file and prints what the
service will run with. ``record`` does the same and writes a sha256 baseline
of the file; ``verify`` compares the file against that baseline so edits to
the client secret or maintenance token made outside a deploy are noticed.

    python -m scripts.check_env check --env-file /srv/listlink/.env
    python -m scripts.check_env record --env-file /srv/listlink/.env --hash-file /srv/listlink/.env.sha256
    python -m scripts.check_env verify --env-file /srv/listlink/.env --hash-file /srv/listlink/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from listlink.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

_COMMAND_HELP = {
    "check": "Load settings from the env file and print a summary.",
    "record": "Load settings, then write the env file checksum baseline.",
    "verify": "Load settings, then compare the env file with its baseline.",
}


@dataclass(frozen=True)
class EnvBaseline:
    """sha256 baseline of an env file, kept next to it on disk."""

    env_file: Path
    hash_file: Path

    def current(self) -> str:
        return hashlib.sha256(self.env_file.read_bytes()).hexdigest()

    def write(self) -> str:
        digest = self.current()
        self.hash_file.write_text(digest + "\n", encoding="utf-8")
        return digest

    def recorded(self) -> str | None:
        if not self.hash_file.exists():
            return None
        return self.hash_file.read_text(encoding="utf-8").strip()


def load_settings(env_file: Path) -> AppSettings:
    """Seed the process environment from ``env_file`` and build the settings."""
    if not env_file.is_file():
        raise FileNotFoundError(f"No env file at {env_file}")
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def summarize(settings: AppSettings) -> str:
    alexa = settings.alexa
    maintenance = settings.maintenance
    rows = {
        "environment": settings.environment,
        "store backend": settings.store.backend,
        "allowed client ids": len(alexa.allowed_client_ids) or "any",
        "client secret configured": bool(alexa.client_secret),
        "access tokens sealed": bool(alexa.access_token_sealing_secret),
        "maintenance token configured": bool(maintenance.maintenance_token),
        "cleanup scheduler enabled": maintenance.scheduler_enabled,
    }
    return "\n".join(f"  {name}: {value}" for name, value in rows.items())


def _record(baseline: EnvBaseline) -> int:
    digest = baseline.write()
    print(f"Baseline {digest} written to {baseline.hash_file}")
    return EXIT_OK


def _verify(baseline: EnvBaseline) -> int:
    expected = baseline.recorded()
    if expected is None:
        print(
            f"No baseline at {baseline.hash_file}; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    actual = baseline.current()
    if actual != expected:
        print(
            f"{baseline.env_file} changed since the baseline was recorded "
            f"(recorded {expected}, now {actual}).",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print(f"{baseline.env_file} matches its baseline.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check list-link settings and watch the env file for drift."
    )
    commands = parser.add_subparsers(dest="command", required=True)
    for name, help_text in _COMMAND_HELP.items():
        command = commands.add_parser(name, help=help_text)
        command.add_argument("--env-file", type=Path, default=Path(".env"))
        if name != "check":
            command.add_argument("--hash-file", type=Path, required=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(f"Invalid settings in {args.env_file}:\n{exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Could not load settings from {args.env_file}: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    print(f"Settings from {args.env_file}:\n{summarize(settings)}")

    if args.command == "check":
        return EXIT_OK
    baseline = EnvBaseline(args.env_file, args.hash_file)
    if args.command == "record":
        return _record(baseline)
    return _verify(baseline)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
