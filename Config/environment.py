"""
Environment detection and .env file loading.

Uses a unified .env file for both desktop and Docker environments.
Runtime detection handles environment-specific configuration.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class Environment:
    """Detect and configure environment."""

    def __init__(self):
        self.is_docker = self._detect_docker()
        self.env_name = "prod" if self.is_docker else "dev"
        self.env_file = self._find_env_file()
        self._loaded = False

    def _detect_docker(self) -> bool:
        """Detect if running in Docker container."""
        if os.path.exists('/.dockerenv'):
            return True
        if os.getenv('IN_DOCKER', '').lower() == 'true':
            return True
        try:
            with open('/proc/1/cgroup', 'r') as f:
                return 'docker' in f.read()
        except OSError:
            return False

    def _find_env_file(self) -> Optional[Path]:
        """Find the unified .env file for current environment."""
        if self.is_docker:
            env_path = Path('/app/.env')
        else:
            # Go up from Config/ to project root
            project_root = Path(__file__).parents[1]
            env_path = project_root / '.env'

        return env_path if env_path.exists() else None

    def load(self, force_reload: bool = False) -> None:
        """
        Load environment variables from file.

        Existing process variables always win over values from the file.

        Args:
            force_reload: If True, reload even if already loaded
        """
        if self._loaded and not force_reload:
            return

        if self.env_file:
            load_dotenv(self.env_file, override=False)
        self._loaded = True

    # ========================================================================
    # Environment-Specific Helpers
    # ========================================================================

    @property
    def database_url(self) -> str:
        """DSN for the movement store. Falls back to a local sqlite file."""
        url = os.getenv('DATABASE_URL')
        if url:
            return url
        if self.is_docker:
            host = os.getenv('DB_HOST', 'db')
            port = os.getenv('DB_PORT', '5432')
            user = os.getenv('DB_USER', 'silos')
            password = os.getenv('DB_PASSWORD', '')
            name = os.getenv('DB_NAME', 'silos')
            return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"
        return f"sqlite+aiosqlite:///{Path(__file__).parents[1] / 'silos.db'}"

    @property
    def log_dir(self) -> Path:
        """Get log directory for current environment."""
        if self.is_docker:
            return Path('/app/logs')
        base = os.getenv('SILO_LEDGER_LOG_DIR')
        if base:
            return Path(base)
        return Path(__file__).parents[1] / 'logs'

    def __repr__(self) -> str:
        return f"Environment(env={self.env_name}, docker={self.is_docker}, file={self.env_file})"


# ============================================================================
# Global Instance - Auto-load on import
# ============================================================================

env = Environment()
env.load()

is_docker = env.is_docker
env_name = env.env_name


def get_environment() -> str:
    """Deployment flavour used to pick log formatting ('production' or 'development')."""
    explicit = os.getenv('SILO_LEDGER_ENV')
    if explicit:
        return explicit.lower()
    return 'production' if env.is_docker else 'development'
