# ==============================================
# CLI: Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Operator commands around the import engine. Normally imports
#   are started by a background worker; the CLI runs the same code
#   in the foreground and writes progress events to the log.
#
# COMMANDS:
# ---------
# 1. Create the catalog tables:
#    python -m docsync.cli init
#
# 2. Register a MongoDB database as a data source:
#    python -m docsync.cli add-source shop "mongodb://localhost:27017/shop" --owner-id 7
#
# 3. Import every collection of a data source:
#    python -m docsync.cli import 1
#    python -m docsync.cli import 1 --incremental --last-sync-field updated_at
#    python -m docsync.cli import 1 --batch-size 500 --no-adaptive
#
# 4. Show sync history / statistics:
#    python -m docsync.cli history 1 --limit 20
#    python -m docsync.cli stats 1 --days 7
#
# 5. Delete old sync history:
#    python -m docsync.cli cleanup --days-to-keep 90 [--data-source-id 1]
#
# ==============================================

import argparse
import json
import sys
from typing import List, Optional

import pymysql
import structlog
from pymongo.errors import PyMongoError

from docsync.config import AppConfig, get_config
from docsync.errors import DocSyncError
from docsync.importer import ImportOptions
from docsync.log_setup import configure_logging
from docsync.orchestrator import ImportOrchestrator
from docsync.persistence import (
    DataSourceStore,
    SyncHistoryStore,
    TableMetadataStore,
    ensure_catalog_tables,
)
from docsync.progress import LoggingProgressChannel
from docsync.storage import MongoSource, MySQLClient

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docsync", description="MongoDB to MySQL import engine")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init", help="Create the catalog tables")

    add_source = commands.add_parser("add-source", help="Register a MongoDB data source")
    add_source.add_argument("name", help="Display name of the data source")
    add_source.add_argument("connection_string", help="MongoDB URI including the database name")
    add_source.add_argument("--owner-id", type=int, help="Owning user id")

    run = commands.add_parser("import", help="Import every collection of a data source")
    run.add_argument("data_source_id", type=int)
    run.add_argument("--incremental", action="store_true", help="Only documents newer than the last sync")
    run.add_argument("--last-sync-field", help="Document field compared with the last sync time")
    run.add_argument("--batch-size", type=int, help="Default batch size")
    run.add_argument("--no-adaptive", action="store_true", help="Always use --batch-size as is")
    run.add_argument("--user-id", type=int, help="Send progress to this user only")

    history = commands.add_parser("history", help="Show sync history of a data source")
    history.add_argument("data_source_id", type=int)
    history.add_argument("--limit", type=int, default=10)

    stats = commands.add_parser("stats", help="Show sync statistics of a data source")
    stats.add_argument("data_source_id", type=int)
    stats.add_argument("--days", type=int, default=30)

    cleanup = commands.add_parser("cleanup", help="Delete old sync history")
    cleanup.add_argument("--days-to-keep", type=int, default=90)
    cleanup.add_argument("--data-source-id", type=int)

    return parser


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _catalog_client(config: AppConfig) -> MySQLClient:
    return MySQLClient.from_config(config.mysql)


def build_orchestrator(config: AppConfig, catalog: MySQLClient) -> ImportOrchestrator:
    def source_factory(connection_string: str) -> MongoSource:
        return MongoSource(
            connection_string,
            server_selection_timeout_ms=config.mongo.server_selection_timeout_ms,
            connect_timeout_ms=config.mongo.connect_timeout_ms,
            connect_attempts=config.mongo.connect_attempts,
        )

    def destination_factory() -> MySQLClient:
        return MySQLClient.from_config(config.mysql)

    return ImportOrchestrator(
        source_factory=source_factory,
        destination_factory=destination_factory,
        data_source_store=DataSourceStore(catalog),
        metadata_store=TableMetadataStore(catalog),
        history_store=SyncHistoryStore(catalog),
        channel=LoggingProgressChannel(),
        config=config.importing,
    )


def run_import(args, config: AppConfig, catalog: MySQLClient) -> int:
    data_source = DataSourceStore(catalog).get(args.data_source_id)
    if data_source is None:
        logger.error("Data source not found", data_source_id=args.data_source_id)
        return 1

    options = ImportOptions.from_config(
        config.importing,
        batch_size=args.batch_size,
        incremental=args.incremental,
        last_sync_field=args.last_sync_field,
        adaptive=False if args.no_adaptive else None,
    )
    orchestrator = build_orchestrator(config, catalog)
    try:
        result = orchestrator.import_data_source(data_source, options, user_id=args.user_id)
    except (DocSyncError, pymysql.MySQLError, PyMongoError) as e:
        logger.error(
            "Import failed",
            data_source_id=data_source.id,
            error_type=type(e).__name__,
            error=str(e),
        )
        return 1
    _print(result.to_dict())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config.logging.level, config.logging.json)

    with _catalog_client(config) as catalog:
        if args.command == "init":
            ensure_catalog_tables(catalog)
            logger.info("Catalog tables ready", database=config.mysql.database)
            return 0

        if args.command == "add-source":
            data_source = DataSourceStore(catalog).create(args.name, args.connection_string, args.owner_id)
            _print(data_source.to_dict())
            return 0

        if args.command == "import":
            return run_import(args, config, catalog)

        history = SyncHistoryStore(catalog)
        if args.command == "history":
            _print([record.to_dict() for record in history.get_history(args.data_source_id, args.limit)])
        elif args.command == "stats":
            _print(history.get_stats(args.data_source_id, args.days))
        elif args.command == "cleanup":
            deleted = history.cleanup(args.days_to_keep, args.data_source_id)
            _print({"deleted": deleted})
        return 0


if __name__ == "__main__":
    sys.exit(main())
