import configparser
import os
from dataclasses import dataclass
from pathlib import Path

from .models import ROOT_ID

IF_EXISTS_CHOICES = ("skip", "error", "duplicate")


@dataclass
class CTFileConfig:
    session: str
    app_id: str = ""
    api_base_url: str = "https://rest.ctfile.com"
    root_folder_id: str = ROOT_ID


@dataclass
class CacheConfig:
    enabled: bool = True
    path_ttl_seconds: int = 3600
    listing_ttl_seconds: int = 60
    listing_max_entries: int = 1024


@dataclass
class ConnectionConfig:
    timeout_seconds: int = 30
    connect_timeout_seconds: int = 10
    retry_attempts: int = 3
    retry_base_delay_ms: int = 1000
    retry_backoff_multiplier: float = 2.0
    retry_max_delay_ms: int = 30000


@dataclass
class UploadConfig:
    auto_create_dirs: bool = True
    if_exists: str = "skip"  # "skip", "error" or "duplicate"


@dataclass
class LogConfig:
    level: str = "INFO"
    file: str = "ctfile-fs.log"
    console: bool = True


@dataclass
class AppConfig:
    ctfile: CTFileConfig
    cache: CacheConfig
    connection: ConnectionConfig
    upload: UploadConfig
    logging: LogConfig


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _parse_int(section: str, key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {key} value in [{section}]: '{value}' - must be an integer"
        )


def _parse_float(section: str, key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid {key} value in [{section}]: '{value}' - must be a number")


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over the config file, which takes
    precedence over the CTFILE_SESSION environment variable.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments.

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If the session is missing or a value cannot be parsed.
    """
    # Initialize with defaults
    ctfile_config = {
        "session": os.environ.get("CTFILE_SESSION") or None,
        "app_id": "",
        "api_base_url": "https://rest.ctfile.com",
        "root_folder_id": ROOT_ID,
    }
    cache_config = {
        "enabled": True,
        "path_ttl_seconds": 3600,
        "listing_ttl_seconds": 60,
        "listing_max_entries": 1024,
    }
    connection_config = {
        "timeout_seconds": 30,
        "connect_timeout_seconds": 10,
        "retry_attempts": 3,
        "retry_base_delay_ms": 1000,
        "retry_backoff_multiplier": 2.0,
        "retry_max_delay_ms": 30000,
    }
    upload_config = {
        "auto_create_dirs": True,
        "if_exists": "skip",
    }
    log_config = {
        "level": "INFO",
        "file": "ctfile-fs.log",
        "console": True,
    }

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        # Load [ctfile] section
        if parser.has_section("ctfile"):
            section = parser["ctfile"]
            for key in ("session", "app_id", "api_base_url", "root_folder_id"):
                if section.get(key):
                    ctfile_config[key] = section.get(key)

        # Load [cache] section
        if parser.has_section("cache"):
            section = parser["cache"]
            if section.get("enabled"):
                cache_config["enabled"] = _parse_bool(section.get("enabled"))
            for key in ("path_ttl_seconds", "listing_ttl_seconds", "listing_max_entries"):
                if section.get(key):
                    cache_config[key] = _parse_int("cache", key, section.get(key))

        # Load [connection] section
        if parser.has_section("connection"):
            section = parser["connection"]
            for key in (
                "timeout_seconds",
                "connect_timeout_seconds",
                "retry_attempts",
                "retry_base_delay_ms",
                "retry_max_delay_ms",
            ):
                if section.get(key):
                    connection_config[key] = _parse_int("connection", key, section.get(key))
            if section.get("retry_backoff_multiplier"):
                connection_config["retry_backoff_multiplier"] = _parse_float(
                    "connection",
                    "retry_backoff_multiplier",
                    section.get("retry_backoff_multiplier"),
                )

        # Load [upload] section
        if parser.has_section("upload"):
            section = parser["upload"]
            if section.get("auto_create_dirs"):
                upload_config["auto_create_dirs"] = _parse_bool(section.get("auto_create_dirs"))
            if section.get("if_exists"):
                upload_config["if_exists"] = section.get("if_exists").strip().lower()

        # Load [logging] section
        if parser.has_section("logging"):
            section = parser["logging"]
            if section.get("level"):
                log_config["level"] = section.get("level")
            if "file" in section:
                log_config["file"] = section.get("file")
            if section.get("console"):
                log_config["console"] = _parse_bool(section.get("console"))

    # Override with CLI arguments (cli_args take precedence)
    if cli_args.get("session") is not None:
        ctfile_config["session"] = cli_args["session"] or None
    if cli_args.get("app_id") is not None:
        ctfile_config["app_id"] = cli_args["app_id"]
    if cli_args.get("api_base_url") is not None:
        ctfile_config["api_base_url"] = cli_args["api_base_url"]
    if cli_args.get("if_exists") is not None:
        upload_config["if_exists"] = cli_args["if_exists"].lower()
    if cli_args.get("no_cache"):
        cache_config["enabled"] = False
    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    # Validate required fields
    if not ctfile_config["session"]:
        raise ValueError("Missing required configuration fields: session")

    if upload_config["if_exists"] not in IF_EXISTS_CHOICES:
        raise ValueError(
            f"Invalid if_exists value: '{upload_config['if_exists']}'. "
            f"Must be one of: {', '.join(IF_EXISTS_CHOICES)}"
        )

    root_id = ctfile_config["root_folder_id"]
    if not (root_id.startswith("d") and root_id[1:].isdigit()):
        raise ValueError(f"Invalid root_folder_id: '{root_id}'. Must look like 'd123'.")

    if connection_config["retry_attempts"] < 0:
        raise ValueError("retry_attempts must not be negative")

    ctfile_config["api_base_url"] = ctfile_config["api_base_url"].rstrip("/")

    # Build and return AppConfig
    return AppConfig(
        ctfile=CTFileConfig(
            session=ctfile_config["session"],
            app_id=ctfile_config["app_id"],
            api_base_url=ctfile_config["api_base_url"],
            root_folder_id=ctfile_config["root_folder_id"],
        ),
        cache=CacheConfig(
            enabled=cache_config["enabled"],
            path_ttl_seconds=cache_config["path_ttl_seconds"],
            listing_ttl_seconds=cache_config["listing_ttl_seconds"],
            listing_max_entries=cache_config["listing_max_entries"],
        ),
        connection=ConnectionConfig(
            timeout_seconds=connection_config["timeout_seconds"],
            connect_timeout_seconds=connection_config["connect_timeout_seconds"],
            retry_attempts=connection_config["retry_attempts"],
            retry_base_delay_ms=connection_config["retry_base_delay_ms"],
            retry_backoff_multiplier=connection_config["retry_backoff_multiplier"],
            retry_max_delay_ms=connection_config["retry_max_delay_ms"],
        ),
        upload=UploadConfig(
            auto_create_dirs=upload_config["auto_create_dirs"],
            if_exists=upload_config["if_exists"],
        ),
        logging=LogConfig(
            level=log_config["level"],
            file=log_config["file"],
            console=log_config["console"],
        ),
    )
