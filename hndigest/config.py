import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import yaml

from hndigest.errors import ConfigError
from hndigest.models import TopicFilter


CONFIG_PATH = Path("config.yaml")
DEFAULT_DB_FILE = "db.sqlite3"
DEFAULT_API_BASE_URL = "https://hacker-news.firebaseio.com/v0"
MAX_PURGE_AFTER_DAYS = 36500


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    username: str
    password: str
    sender: str
    to: str
    port: int = 465
    subject: str = "Digest"
    use_ssl: bool = True
    use_tls: bool = False


@dataclass(frozen=True)
class TelegramConfig:
    token: str
    chat_id: str


@dataclass(frozen=True)
class RssSource:
    name: str
    url: str


@dataclass(frozen=True)
class AppConfig:
    """Validated, immutable run configuration."""
    db_file: str
    purge_after_days: int
    blacklisted_domains: tuple[str, ...] = ()
    filters: tuple[TopicFilter, ...] = ()
    rss_sources: tuple[RssSource, ...] = ()
    api_base_url: str = DEFAULT_API_BASE_URL
    max_items: int = 100
    max_concurrent: int = 10
    feed_timeout: float = 15
    include_unmatched: bool = False
    purge_after_run: bool = False
    smtp: Optional[SmtpConfig] = None
    telegram: Optional[TelegramConfig] = None

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.purge_after_days)

    @classmethod
    def from_dict(cls, cfg: dict) -> "AppConfig":
        """Validate a raw config dict. Raises ConfigError naming the bad entry."""
        if not isinstance(cfg, dict):
            raise ConfigError("Config root must be a mapping")

        return cls(
            db_file=_require(cfg, "db_file", str),
            purge_after_days=_purge_after_days(cfg),
            blacklisted_domains=tuple(_require(cfg, "blacklisted_domains", list)),
            filters=tuple(_parse_filter(i, f) for i, f in enumerate(_require(cfg, "filters", list))),
            rss_sources=tuple(_parse_rss_source(i, s) for i, s in enumerate(_require(cfg, "rss_sources", list))),
            api_base_url=_require(cfg, "api_base_url", str).rstrip("/"),
            max_items=_non_negative_int(cfg, "max_items"),
            max_concurrent=max(1, _non_negative_int(cfg, "max_concurrent")),
            feed_timeout=float(_require(cfg, "feed_timeout", (int, float))),
            include_unmatched=_require(cfg, "include_unmatched", bool),
            purge_after_run=_require(cfg, "purge_after_run", bool),
            smtp=_parse_smtp(cfg["smtp"]) if cfg.get("smtp") else None,
            telegram=_parse_telegram(cfg["telegram"]) if cfg.get("telegram") else None,
        )


def _require(cfg: dict, key: str, kind) -> Any:
    if key not in cfg or cfg[key] is None:
        raise ConfigError(f"Missing config entry '{key}'")
    value = cfg[key]
    # bool is an int subclass; don't let `true` pass as a number
    if kind in (int, (int, float)) and isinstance(value, bool):
        raise ConfigError(f"Config entry '{key}' must be a number, got {value!r}")
    if not isinstance(value, kind):
        raise ConfigError(f"Config entry '{key}' has the wrong type: {value!r}")
    return value


def _non_negative_int(cfg: dict, key: str) -> int:
    value = _require(cfg, key, int)
    if value < 0:
        raise ConfigError(f"Config entry '{key}' must be >= 0, got {value}")
    return value


def _purge_after_days(cfg: dict) -> int:
    value = _non_negative_int(cfg, "purge_after_days")
    if value > MAX_PURGE_AFTER_DAYS:
        raise ConfigError(
            f"Config entry 'purge_after_days' must be <= {MAX_PURGE_AFTER_DAYS}, got {value}"
        )
    return value


def _flag(section: dict, name: str, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"Config entry '{name}.{key}' must be true or false, got {value!r}")
    return value


def _parse_filter(index: int, entry: Any) -> TopicFilter:
    if not isinstance(entry, dict) or not isinstance(entry.get("title"), str) \
            or not isinstance(entry.get("value"), str):
        raise ConfigError(f"filters[{index}] must have string 'title' and 'value': {entry!r}")
    return TopicFilter.from_value(entry["title"], entry["value"])


def _parse_rss_source(index: int, entry: Any) -> RssSource:
    if not isinstance(entry, dict) or not entry.get("name") or not entry.get("url"):
        raise ConfigError(f"rss_sources[{index}] must have 'name' and 'url': {entry!r}")
    return RssSource(name=str(entry["name"]), url=str(entry["url"]))


def _parse_smtp(section: Any) -> SmtpConfig:
    if not isinstance(section, dict):
        raise ConfigError("Config entry 'smtp' must be a mapping")
    missing = [k for k in ("host", "username", "password", "from", "to") if not section.get(k)]
    if missing:
        raise ConfigError(f"Config entry 'smtp' is missing: {', '.join(missing)}")
    port = section.get("port", 465)
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigError(f"Config entry 'smtp.port' must be an integer, got {port!r}")
    return SmtpConfig(
        host=section["host"],
        username=section["username"],
        password=section["password"],
        sender=section["from"],
        to=section["to"],
        port=port,
        subject=section.get("subject", "Digest"),
        use_ssl=_flag(section, "smtp", "use_ssl", True),
        use_tls=_flag(section, "smtp", "use_tls", False),
    )


def _parse_telegram(section: Any) -> TelegramConfig:
    if not isinstance(section, dict) or not section.get("token") or not section.get("chat_id"):
        raise ConfigError("Config entry 'telegram' must have 'token' and 'chat_id'")
    return TelegramConfig(token=str(section["token"]), chat_id=str(section["chat_id"]))


def load_config(path: Path = CONFIG_PATH) -> dict:
    """Load config.yaml (JSON works too), with defaults and env var overrides."""
    path = Path(path)
    try:
        with open(path) as f:
            cfg = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    # Env vars take precedence for secrets
    env_token = os.environ.get("HNDIGEST_TELEGRAM_TOKEN")
    if env_token and isinstance(cfg.get("telegram"), dict):
        cfg["telegram"]["token"] = env_token
    env_password = os.environ.get("HNDIGEST_SMTP_PASSWORD")
    if env_password and isinstance(cfg.get("smtp"), dict):
        cfg["smtp"]["password"] = env_password

    # Resolve db_file relative to the config file
    db_file = cfg.get("db_file") or DEFAULT_DB_FILE
    if isinstance(db_file, str) and db_file != ":memory:" and not Path(db_file).is_absolute():
        db_file = str(path.parent / db_file)
    cfg["db_file"] = db_file

    # Defaults
    cfg.setdefault("blacklisted_domains", [])
    cfg.setdefault("filters", [])
    cfg.setdefault("rss_sources", [])
    cfg.setdefault("api_base_url", DEFAULT_API_BASE_URL)
    cfg.setdefault("max_items", 100)
    cfg.setdefault("max_concurrent", 10)
    cfg.setdefault("feed_timeout", 15)
    cfg.setdefault("include_unmatched", False)
    cfg.setdefault("purge_after_run", False)

    return cfg


def load_app_config(path: Path = CONFIG_PATH) -> AppConfig:
    return AppConfig.from_dict(load_config(path))
