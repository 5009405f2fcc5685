"""Migration Manager — runs the external alembic CLI and reports its output.

Invariants:
    - Every command runs with a wall-clock timeout; on expiry the child is killed
      and MigrationTimeoutError is raised
    - Non-zero exit raises MigrationCommandError carrying the combined stdout/stderr
    - The target environment is passed to alembic as -x env=<name>; alembic/env.py
      loads the matching settings
    - A settings file chosen with --config reaches alembic/env.py through
      WEBTEMPLATE_CONFIG in the child environment

Design Decisions:
    - Subprocess over alembic's Python API: same behavior as running the CLI by hand,
      and a hung migration can be killed
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from webtemplate.config import CONFIG_PATH_ENV
from webtemplate.core.errors import (
    MigrationCommandError,
    MigrationTimeoutError,
    MigrationToolMissingError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60


@dataclass
class MigrationConfig:
    environment: str = "local"
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    executable: str = "alembic"
    config_file: str = "alembic.ini"
    migrations_dir: str = "alembic/versions"
    settings_path: str | None = None


def ensure_tool_installed(executable: str = "alembic") -> str:
    """Return the resolved path of *executable* or raise MigrationToolMissingError."""
    path = shutil.which(executable)
    if path is None:
        raise MigrationToolMissingError(executable)
    return path


class MigrationManager:
    def __init__(self, config: MigrationConfig | None = None):
        self.config = config or MigrationConfig()

    def command(self, *args: str) -> list[str]:
        return [
            self.config.executable,
            "-c", self.config.config_file,
            "-x", f"env={self.config.environment}",
            *args,
        ]

    def _child_env(self) -> dict[str, str] | None:
        if not self.config.settings_path:
            return None
        return {**os.environ, CONFIG_PATH_ENV: self.config.settings_path}

    def _run(self, action: str, *args: str) -> str:
        cmd = self.command(*args)
        logger.debug(f"Running {' '.join(cmd)}", extra={"action": action})
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.config.timeout,
                check=False,
                env=self._child_env(),
            )
        except subprocess.TimeoutExpired as e:
            output = e.output or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            logger.error(
                f"Migration {action} timed out after {self.config.timeout}s",
                extra={"action": action, "output": output},
            )
            raise MigrationTimeoutError(action, self.config.timeout, output) from e

        if proc.returncode != 0:
            logger.error(
                f"Migration {action} failed (exit {proc.returncode})",
                extra={"action": action, "output": proc.stdout},
            )
            raise MigrationCommandError(action, proc.returncode, proc.stdout)

        logger.info(
            f"Migration {action} finished",
            extra={"action": action, "output": proc.stdout},
        )
        return proc.stdout

    def check_migrations(self) -> str:
        """Show the revision the database is at."""
        return self._run("status", "current", "--verbose")

    def generate_migration(self, name: str = "") -> str:
        """Autogenerate a revision from the difference between models and database."""
        args = ["revision", "--autogenerate"]
        if name:
            args += ["-m", name]
        return self._run("diff", *args)

    def apply_migrations(self, dry_run: bool = False) -> str:
        """Upgrade to head; with dry_run, render the SQL without touching the database."""
        args = ["upgrade", "head"]
        if dry_run:
            args.append("--sql")
        return self._run("apply", *args)

    def validate_migrations(self) -> str:
        """Fail when the models have changes no revision covers."""
        return self._run("validate", "check")

    def init_migration_directory(self) -> bool:
        """Create the versions directory if missing; True when it was created."""
        path = Path(self.config.migrations_dir)
        if path.is_dir():
            return False
        path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created migration directory {path}")
        return True
