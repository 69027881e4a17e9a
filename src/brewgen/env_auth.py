"""Environment-based GitHub authentication for brewgen.

Tokens are read from the environment (optionally seeded from a ``.env``
file). The REST client uses them directly; ``gh`` picks them up through
``GH_TOKEN`` once ``configure_github_cli`` has run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

DEFAULT_TOKEN_VARS = ("GITHUB_ACCESS_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    token_vars: tuple[str, ...] = field(default=DEFAULT_TOKEN_VARS)


class EnvironmentAuthManager:
    """Discovers GitHub credentials from environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        """Load the first .env file found; existing variables win."""
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else [".env", ".env.local"]
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def get_github_token(self) -> str | None:
        for name in self.config.token_vars:
            raw = os.getenv(name)
            if raw is None:
                continue
            token = raw.strip()
            if token:
                self.logger.debug(f"Found GitHub token in {name}")
                return token
        return None

    def configure_github_cli(self) -> bool:
        """Export the discovered token as ``GH_TOKEN`` for ``gh`` subprocesses."""
        token = self.get_github_token()
        if token:
            os.environ.setdefault("GH_TOKEN", token)
            self.logger.log_operation("github_cli_configured_from_env")
            return True
        self.logger.debug("No GitHub token found in environment; gh will use its own login")
        return False

    def get_authentication_recommendations(self) -> list[str]:
        if self.get_github_token():
            return []
        return [
            "Run 'gh auth login' to let the gh download strategy use your session",
            f"Or set one of {', '.join(self.config.token_vars)}",
            "Or create a .env file with GITHUB_TOKEN=your_token",
        ]


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    return EnvironmentAuthManager(config or EnvAuthConfig())


__all__ = [
    "DEFAULT_TOKEN_VARS",
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "create_env_auth_manager",
]
