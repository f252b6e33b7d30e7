"""
Runs ``wp search-replace`` as a subprocess with a timeout.
"""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from ssl_migrate.config import MigrationConfig
from ssl_migrate.errors import SubcommandError
from ssl_migrate.logger import get_logger

logger = get_logger("runner")

Tables = Union[str, Sequence[str]]


@dataclass(frozen=True, slots=True)
class SubcommandResult:
    argv: tuple[str, ...]
    returncode: int
    output: str


def build_options(options: Mapping[str, Any]) -> List[str]:
    """``{"dry-run": True, "url": "x", "precise": False}`` → ``["--dry-run", "--url=x"]``."""
    args: List[str] = []
    for key, value in options.items():
        if value is None or value is False:
            continue
        if value is True:
            args.append(f"--{key}")
        else:
            args.append(f"--{key}={value}")
    return args


class WpCliRunner:
    """Thin wrapper over WP-CLI; stdout and stderr are returned as one string."""

    def __init__(
        self,
        command: Sequence[str],
        wp_path: Optional[Path] = None,
        timeout: float = 600.0,
    ) -> None:
        self.command = list(command)
        self.wp_path = wp_path
        self.timeout = timeout

    @classmethod
    def from_config(cls, settings: MigrationConfig) -> WpCliRunner:
        return cls(settings.wp_cli, settings.wp_path, settings.subcommand_timeout)

    def build_argv(
        self,
        search: str,
        replace: str,
        tables: Tables,
        options: Mapping[str, Any],
    ) -> List[str]:
        names = [tables] if isinstance(tables, str) else list(tables)
        argv = [*self.command, "search-replace", search, replace, *names]
        argv += build_options(options)
        if self.wp_path is not None:
            argv.append(f"--path={self.wp_path}")
        return argv

    def search_replace(
        self,
        search: str,
        replace: str,
        tables: Tables,
        options: Mapping[str, Any],
    ) -> SubcommandResult:
        """Raises SubcommandError on a non-zero exit, timeout or missing binary."""
        argv = self.build_argv(search, replace, tables, options)
        logger.debug("Running: %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            output = exc.stdout if isinstance(exc.stdout, str) else ""
            raise SubcommandError(f"{argv[0]} timed out after {self.timeout}s", output=output) from exc
        except OSError as exc:
            raise SubcommandError(f"Cannot run {argv[0]}: {exc}") from exc

        output = (proc.stdout or "") + (proc.stderr or "")
        if proc.returncode != 0:
            raise SubcommandError(
                f"{argv[0]} search-replace exited with {proc.returncode}",
                output=output,
                returncode=proc.returncode,
            )
        return SubcommandResult(tuple(argv), proc.returncode, output)


__all__ = ["WpCliRunner", "SubcommandResult", "Tables", "build_options"]
