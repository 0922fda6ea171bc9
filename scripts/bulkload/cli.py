#!/usr/bin/env python3
"""
Unified CLI for bulk loading.
Single entry point for loading, benchmarking and COPY file handling.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import ERR_CONNECTION_FAILED, MSG_CONNECTING_DB, MSG_LOAD_COMPLETE, PROFILES, LoadConfig
from .database import COPY_FORMATS, DatabaseManager
from .export import export_copy_file, import_copy_file
from .logger import LogLevel, StructuredLogger, get_logger, set_logger
from .metrics import MetricsCollector
from .models import TABLE_NAME
from .runner import DEFAULT_SCALES, BenchmarkRunner, format_results, write_results_csv
from .strategies import available_strategies, get_strategy_class


def _non_negative_int(value: str) -> int:
    number = int(value.replace("_", ""))
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def _positive_int(value: str) -> int:
    number = _non_negative_int(value)
    if number == 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


def _int_list(value: str) -> List[int]:
    return [_positive_int(part.strip()) for part in value.split(",") if part.strip()]


def _strategy_list(value: str) -> List[str]:
    names = [part.strip() for part in value.split(",") if part.strip()]
    for name in names:
        try:
            get_strategy_class(name)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e))
    return names


def _load_config(args, require_database: bool = True) -> Optional[LoadConfig]:
    """Build configuration from env files and global options."""
    logger = get_logger()
    try:
        config = LoadConfig.from_env(
            env_file=Path(args.env_file) if args.env_file else None,
            profile=args.profile,
            database_url=args.database_url,
            require_database=require_database,
        )
    except ValueError as e:
        logger.error("Configuration error", error=str(e))
        return None

    if getattr(args, "chunk_size", None):
        config.chunk_size = args.chunk_size
    if getattr(args, "seed", None) is not None:
        config.seed = args.seed
    if args.no_progress:
        config.show_progress = False

    logger.info(
        "Environment loaded",
        source=config.environment,
        profile=config.profile,
        chunk_size=config.chunk_size
    )
    return config


def _connect(config: LoadConfig, metrics: MetricsCollector) -> Optional[DatabaseManager]:
    logger = get_logger()
    logger.info(MSG_CONNECTING_DB, url=config.masked_url())
    try:
        database = DatabaseManager(config, metrics)
    except Exception as e:
        logger.error(ERR_CONNECTION_FAILED, error=str(e))
        return None

    if not database.test_connection():
        database.close()
        return None
    return database


def strategies_command(args):
    """List available strategies."""
    logger = get_logger()
    logger.section("INSERT STRATEGIES")
    for name in available_strategies():
        cls = get_strategy_class(name)
        traits = []
        if cls.requires_copy:
            traits.append("postgresql only")
        if not cls.materializes:
            traits.append("streams rows")
        suffix = f" [{', '.join(traits)}]" if traits else ""
        logger.info(f"  {name:<14} {cls.description}{suffix}")
    return 0


def load_command(args):
    """Load generated rows with a single strategy."""
    logger = get_logger()
    logger.section(f"LOAD: {args.strategy}")

    config = _load_config(args)
    if config is None:
        return 1

    metrics = MetricsCollector()
    database = _connect(config, metrics)
    if database is None:
        return 1

    try:
        database.create_schema()
        runner = BenchmarkRunner(config, database, metrics)
        result = runner.run(args.strategy, args.rows, reset=not args.no_reset)

        logger.block(metrics.format_summary())

        if not result.verified:
            logger.error("Load finished with a row count mismatch")
            return 1

        logger.success(MSG_LOAD_COMPLETE, strategy=args.strategy, rows=result.rows_inserted)
        return 0

    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error("Load failed", error=str(e))
        return 1
    finally:
        database.close()


def bench_command(args):
    """Compare strategies across dataset scales."""
    logger = get_logger()
    logger.section("INSERT BENCHMARK")

    config = _load_config(args)
    if config is None:
        return 1

    metrics = MetricsCollector()
    database = _connect(config, metrics)
    if database is None:
        return 1

    strategy_names = args.strategies or available_strategies()
    scales = args.scales or list(DEFAULT_SCALES)

    try:
        database.create_schema()
        runner = BenchmarkRunner(config, database, metrics)
        results = runner.run_matrix(strategy_names, scales)

        logger.section("RESULTS")
        logger.block(format_results(results))

        if args.output:
            written = write_results_csv(Path(args.output), results)
            logger.info("Results written", path=args.output, rows=written)

        if not args.keep_rows:
            database.truncate()

        failed = [r for r in results if not r.verified]
        if failed:
            logger.error("Some runs failed verification", count=len(failed))
            return 1
        return 0

    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error("Benchmark failed", error=str(e))
        return 1
    finally:
        database.close()


def export_command(args):
    """Write a generated dataset to a COPY file."""
    logger = get_logger()
    logger.section("EXPORT COPY FILE")

    config = _load_config(args, require_database=False)
    if config is None:
        return 1

    try:
        export_copy_file(Path(args.output), args.rows, config, fmt=args.format)
        return 0
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error("Export failed", error=str(e))
        return 1


def import_command(args):
    """Stream a prepared COPY file into the table."""
    logger = get_logger()
    logger.section("IMPORT COPY FILE")

    config = _load_config(args)
    if config is None:
        return 1

    metrics = MetricsCollector()
    database = _connect(config, metrics)
    if database is None:
        return 1

    try:
        database.create_schema()
        with metrics.timer("import"):
            rows = import_copy_file(database, Path(args.file), fmt=args.format)
        logger.block(metrics.format_summary())
        logger.success("Import completed", rows=rows, table_rows=database.count_rows())
        return 0
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error("Import failed", error=str(e))
        return 1
    finally:
        database.close()


def reset_command(args):
    """Delete every row from the table."""
    logger = get_logger()
    logger.section("RESET TABLE")

    config = _load_config(args)
    if config is None:
        return 1

    database = _connect(config, MetricsCollector())
    if database is None:
        return 1

    try:
        database.create_schema()
        rows = database.count_rows()
        if rows == 0:
            logger.info("Table is already empty", table=TABLE_NAME)
            return 0

        logger.info("Data to be deleted", table=TABLE_NAME, rows=rows)

        if not args.confirm:
            response = input("\nConfirm deletion? [y/N]: ")
            if response.lower() != "y":
                logger.info("Deletion cancelled")
                return 0

        database.truncate()
        logger.success("Table reset", table=TABLE_NAME, deleted=rows)
        return 0

    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error("Reset failed", error=str(e))
        return 1
    finally:
        database.close()


def status_command(args):
    """Check connectivity and table size."""
    logger = get_logger()
    logger.section("SYSTEM STATUS")

    config = _load_config(args)
    if config is None:
        return 1

    database = _connect(config, MetricsCollector())
    if database is None:
        return 1

    try:
        database.create_schema()
        logger.info("Database status:")
        logger.info(f"  dialect: {database.dialect}")
        logger.info(f"  copy supported: {'yes' if database.supports_copy else 'no'}")
        logger.info(f"  {TABLE_NAME}: {database.count_rows():,} rows")
        logger.success("All systems operational")
        return 0
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error("Status check failed", error=str(e))
        return 1
    finally:
        database.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulkload",
        description="Bulk row insertion strategies: ORM, Core and COPY",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Global options
    parser.add_argument('--env-file', type=str, help='Load environment from this file')
    parser.add_argument('--database-url', type=str, help='Override DATABASE_URL')
    parser.add_argument(
        '--profile',
        choices=sorted(PROFILES),
        default='balanced',
        help='Performance profile (chunk and spool sizes)'
    )
    parser.add_argument('--no-progress', action='store_true', help='Disable progress bars')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')
    parser.add_argument(
        '--log-level',
        default='info',
        choices=[level.value.lower() for level in LogLevel],
        help='Minimum log level (--verbose implies debug)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('strategies', help='List insert strategies')

    load_parser = subparsers.add_parser('load', help='Load generated rows with one strategy')
    load_parser.add_argument('--strategy', choices=available_strategies(), required=True)
    load_parser.add_argument('--rows', type=_non_negative_int, required=True, help='Number of rows to insert')
    load_parser.add_argument('--chunk-size', type=_positive_int, help='Rows per chunk (overrides profile)')
    load_parser.add_argument('--seed', type=int, help='Seed for the generated messages')
    load_parser.add_argument('--no-reset', action='store_true', help='Append instead of truncating first')

    bench_parser = subparsers.add_parser('bench', help='Compare strategies across scales')
    bench_parser.add_argument(
        '--strategies',
        type=_strategy_list,
        help='Comma-separated strategy names (default: all)'
    )
    bench_parser.add_argument(
        '--scales',
        type=_int_list,
        help=f"Comma-separated row counts (default: {','.join(str(s) for s in DEFAULT_SCALES)})"
    )
    bench_parser.add_argument('--chunk-size', type=_positive_int, help='Rows per chunk (overrides profile)')
    bench_parser.add_argument('--seed', type=int, help='Seed for the generated messages')
    bench_parser.add_argument('--output', type=str, help='Write results to this CSV file')
    bench_parser.add_argument(
        '--keep-rows',
        action='store_true',
        default=False,
        help='Leave the last run\'s rows in the table'
    )

    export_parser = subparsers.add_parser('export', help='Write generated rows to a COPY file')
    export_parser.add_argument('--rows', type=_non_negative_int, required=True)
    export_parser.add_argument('--output', type=str, required=True, help='Destination file')
    export_parser.add_argument('--format', choices=COPY_FORMATS, default='binary')
    export_parser.add_argument('--seed', type=int, help='Seed for the generated messages')

    import_parser = subparsers.add_parser('import', help='COPY a prepared file into the table')
    import_parser.add_argument('--file', type=str, required=True, help='COPY file to load')
    import_parser.add_argument('--format', choices=COPY_FORMATS, default='binary')

    reset_parser = subparsers.add_parser('reset', help='Delete all rows')
    reset_parser.add_argument('--confirm', action='store_true', help='Skip confirmation prompt')

    subparsers.add_parser('status', help='Check database status')

    return parser


COMMANDS = {
    'strategies': strategies_command,
    'load': load_command,
    'bench': bench_command,
    'export': export_command,
    'import': import_command,
    'reset': reset_command,
    'status': status_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = LogLevel.DEBUG if args.verbose else LogLevel.from_name(args.log_level)
    set_logger(StructuredLogger(min_level=log_level))

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    # interrupts during config load or connect land here
    try:
        return command(args)
    except KeyboardInterrupt:
        get_logger().warning("Operation cancelled by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
