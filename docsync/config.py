# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - MySQLConfig (dataclass)
#     host: str             (default "localhost")
#     port: int             (default 3306)
#     user: str             (default "root")
#     password: str         (default "root")
#     database: str         (default "docsync")  → catalog tables live here
#     connect_timeout: int  (default 10)
#
# - MongoConfig (dataclass)
#     server_selection_timeout_ms: int  (default 10000)
#     connect_timeout_ms: int           (default 10000)
#     connect_attempts: int             (default 3)
#
# - ImportConfig (dataclass)
#     schema_name: str               (default "mongodb_import")
#     batch_size: int                (default 1000)
#     adaptive_batch_size: bool      (default True)
#     sample_size: int               (default 100)
#     progress_every_records: int    (default 5000)
#     progress_every_batches: int    (default 5)
#     progress_event: str            (default "document-import-progress")
#
# - LoggingConfig (dataclass)
#     level: str   (default "INFO")
#     json: bool   (default False)
#
# - AppConfig (dataclass)
#     mysql, mongo, importing, logging
#
# FUNCTION:
# ---------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# USAGE:
# ------
#   from docsync.config import get_config
#   config = get_config()
#   print(config.mysql.host)
#   print(config.importing.batch_size)
#
# ==============================================

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class MySQLConfig:
    """MySQL server holding the catalog database and the imported tables."""
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = "root"
    database: str = "docsync"
    connect_timeout: int = 10


@dataclass
class MongoConfig:
    """MongoDB client settings. Connection strings come from each data source."""
    server_selection_timeout_ms: int = 10000
    connect_timeout_ms: int = 10000
    connect_attempts: int = 3


@dataclass
class ImportConfig:
    """Defaults for collection imports and progress reporting."""
    schema_name: str = "mongodb_import"
    batch_size: int = 1000
    adaptive_batch_size: bool = True
    sample_size: int = 100
    progress_every_records: int = 5000
    progress_every_batches: int = 5
    progress_event: str = "document-import-progress"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""
    mysql: MySQLConfig = field(default_factory=MySQLConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    importing: ImportConfig = field(default_factory=ImportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.
    
    Returns:
        AppConfig: Application configuration
    """
    global _config_instance
    
    if _config_instance is not None:
        return _config_instance
    
    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)
    
    mysql_config = MySQLConfig(
        host=os.getenv("MYSQL_HOST", "localhost"),
        port=int(os.getenv("MYSQL_PORT", "3306")),
        user=os.getenv("MYSQL_USER", "root"),
        password=os.getenv("MYSQL_PASSWORD", "root"),
        database=os.getenv("MYSQL_DATABASE", "docsync"),
        connect_timeout=int(os.getenv("MYSQL_CONNECT_TIMEOUT", "10"))
    )
    
    mongo_config = MongoConfig(
        server_selection_timeout_ms=int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "10000")),
        connect_timeout_ms=int(os.getenv("MONGO_CONNECT_TIMEOUT_MS", "10000")),
        connect_attempts=int(os.getenv("MONGO_CONNECT_ATTEMPTS", "3"))
    )
    
    import_config = ImportConfig(
        schema_name=os.getenv("IMPORT_SCHEMA", "mongodb_import"),
        batch_size=int(os.getenv("IMPORT_BATCH_SIZE", "1000")),
        adaptive_batch_size=_env_bool("IMPORT_ADAPTIVE_BATCH_SIZE", True),
        sample_size=int(os.getenv("IMPORT_SAMPLE_SIZE", "100")),
        progress_every_records=int(os.getenv("IMPORT_PROGRESS_EVERY_RECORDS", "5000")),
        progress_every_batches=int(os.getenv("IMPORT_PROGRESS_EVERY_BATCHES", "5")),
        progress_event=os.getenv("IMPORT_PROGRESS_EVENT", "document-import-progress")
    )
    
    logging_config = LoggingConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        json=_env_bool("LOG_JSON", False)
    )
    
    _config_instance = AppConfig(
        mysql=mysql_config,
        mongo=mongo_config,
        importing=import_config,
        logging=logging_config
    )
    
    return _config_instance
