"""
Centralized configuration for the Crazy Eights server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game_defaults.starting_hand_count)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameDefaults:
    """Default house rules for newly created rooms."""
    starting_hand_count: int = 7
    allow_stack_draws: bool = True
    allow_mixed_draw_stacking: bool = False

    def to_settings_dict(self) -> dict:
        """Get defaults keyed the way Settings.from_dict expects them."""
        return {
            "starting_hand_count": self.starting_hand_count,
            "allow_stack_draws": self.allow_stack_draws,
            "allow_mixed_draw_stacking": self.allow_mixed_draw_stacking,
        }


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Optional services
    REDIS_URL: str = ""
    SENTRY_DSN: str = ""

    # Room settings
    MAX_PLAYERS_PER_ROOM: int = 8

    # Game defaults
    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8080),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", ""),
            SENTRY_DSN=get_env("SENTRY_DSN", ""),
            MAX_PLAYERS_PER_ROOM=get_env_int("MAX_PLAYERS_PER_ROOM", 8),
            game_defaults=GameDefaults(
                starting_hand_count=get_env_int("DEFAULT_STARTING_HAND", 7),
                allow_stack_draws=get_env_bool("DEFAULT_ALLOW_STACK_DRAWS", True),
                allow_mixed_draw_stacking=get_env_bool("DEFAULT_ALLOW_MIXED_STACKING", False),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
