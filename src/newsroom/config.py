"""Summary: Application configuration for Newsroom.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for providers, storage, and analysis.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Store settings in a shared config file and parse at startup.
    """

    data_dir: str
    ai_provider: str
    openai_api_key: str | None
    openai_model: str
    ollama_url: str
    ollama_model: str
    slack_bot_token: str | None
    slack_api_url: str
    slack_fixture_path: str
    monitored_channels: list[str]
    api_host: str
    api_port: int
    api_key: str
    squads_path: str | None
    analysis_batch_size: int
    analysis_batch_delay_seconds: float
    min_suggestion_confidence: float
    cache_ttl_hours: float
    summary_excerpt_limit: int
    log_level: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            data_dir=os.getenv("NEWSROOM_DATA_DIR", defaults["data_dir"]),
            ai_provider=os.getenv("NEWSROOM_AI_PROVIDER", defaults["ai_provider"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            ollama_url=os.getenv("OLLAMA_URL", defaults["ollama_url"]),
            ollama_model=os.getenv("OLLAMA_MODEL", defaults["ollama_model"]),
            slack_bot_token=os.getenv("SLACK_BOT_TOKEN") or defaults["slack_bot_token"] or None,
            slack_api_url=os.getenv("NEWSROOM_SLACK_API_URL", defaults["slack_api_url"]),
            slack_fixture_path=os.getenv(
                "NEWSROOM_SLACK_FIXTURE_PATH", defaults["slack_fixture_path"]
            ),
            monitored_channels=_split_csv(
                os.getenv("NEWSROOM_MONITORED_CHANNELS", defaults["monitored_channels"])
            ),
            api_host=os.getenv("NEWSROOM_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("NEWSROOM_API_PORT", defaults["api_port"])),
            api_key=os.getenv("NEWSROOM_API_KEY", defaults["api_key"]),
            squads_path=os.getenv("NEWSROOM_SQUADS_PATH") or defaults["squads_path"] or None,
            analysis_batch_size=int(
                os.getenv("NEWSROOM_ANALYSIS_BATCH_SIZE", defaults["analysis_batch_size"])
            ),
            analysis_batch_delay_seconds=float(
                os.getenv(
                    "NEWSROOM_ANALYSIS_BATCH_DELAY_SECONDS",
                    defaults["analysis_batch_delay_seconds"],
                )
            ),
            min_suggestion_confidence=float(
                os.getenv(
                    "NEWSROOM_MIN_SUGGESTION_CONFIDENCE", defaults["min_suggestion_confidence"]
                )
            ),
            cache_ttl_hours=float(
                os.getenv("NEWSROOM_CACHE_TTL_HOURS", defaults["cache_ttl_hours"])
            ),
            summary_excerpt_limit=int(
                os.getenv("NEWSROOM_SUMMARY_EXCERPT_LIMIT", defaults["summary_excerpt_limit"])
            ),
            log_level=os.getenv("NEWSROOM_LOG_LEVEL", defaults["log_level"]).upper(),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _split_csv(value: str) -> list[str]:
    """Summary: Split a comma-separated setting into trimmed items.

    Importance: Lets list settings live in flat env vars and JSON strings.
    Alternatives: Store lists as JSON arrays in the environment.
    """

    return [item.strip() for item in value.split(",") if item.strip()]
