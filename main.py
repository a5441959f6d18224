#!/usr/bin/env python3
"""
Main entry point for the panel corpus pipeline.
Scrapes the panel listing into Wide/Long datasets and computes n-gram
statistics over the panel descriptions.
"""

import os
import sys
import logging
import argparse
from pathlib import Path

from dotenv import load_dotenv

from panel_corpus.config_manager import ConfigManager, STOPWORD_MODES, GROUP_BY_OPTIONS
from panel_corpus.dataset_saver import DatasetSaver
from panel_corpus.exceptions import ScrapingError
from panel_corpus.ngram_stats import StatisticsConfig, run_statistics
from panel_corpus.orchestrator import Orchestrator


def setup_logging(log_level: str = "INFO", log_dir: str = "data/logs"):
    """Configure console and file logging."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=log_format,
        datefmt=date_format,
        handlers=[
            logging.FileHandler(log_path / "panel_corpus.log", encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Suppress overly verbose external library logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Panel corpus pipeline - scrape panels and compute n-gram statistics"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to configuration file (default: $PANEL_CORPUS_CONFIG or config.yaml)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--stats-only",
        action="store_true",
        help="Skip scraping and compute statistics over the saved long dataset"
    )
    parser.add_argument(
        "--no-stats",
        action="store_true",
        help="Scrape and save the datasets without computing statistics"
    )
    parser.add_argument("--ngram", "-n", type=int, help="N-gram size (overrides config)")
    parser.add_argument("--stopword-mode", choices=STOPWORD_MODES, help="Stop-word policy (overrides config)")
    parser.add_argument("--group-by", choices=GROUP_BY_OPTIONS, help="Partition statistics (overrides config)")
    parser.add_argument("--min-count", type=int, help="Minimum corpus count for frequency tables")
    parser.add_argument("--top", type=int, help="Rows to keep per table (overrides config top_n)")
    return parser.parse_args(argv)


def statistics_config(config_manager: ConfigManager, args: argparse.Namespace) -> StatisticsConfig:
    """Statistics settings from the config file with command-line overrides."""
    settings = config_manager.get_statistics_config()
    overrides = {
        'n': args.ngram,
        'stopword_mode': args.stopword_mode,
        'group_by': args.group_by,
        'min_count': args.min_count,
        'top_n': args.top,
    }
    settings.update({key: value for key, value in overrides.items() if value is not None})
    return StatisticsConfig.from_dict(settings)


def table_name(kind: str, config: StatisticsConfig) -> str:
    name = f"{kind}_{config.n}gram"
    if config.group_by:
        name += f"_by_{config.group_by}"
    return name


def print_harvest_summary(result):
    report = result.report
    print("\n" + "=" * 60)
    print("PANEL HARVEST COMPLETE")
    print("=" * 60)
    print(f"Documents fetched:    {report.documents_fetched}")
    print(f"Panels built:         {report.records_built}")
    print(f"Long rows:            {len(result.long)}")
    print(f"Skipped (malformed):  {len(report.skipped)}")
    print(f"Failed (fetch):       {len(report.failed)}")
    print(f"Id mismatches:        {len(report.mismatched)}")
    print(f"Malformed entries:    {len(report.malformed_entries)}")
    for key, path in result.paths.items():
        print(f"  {key}: {path}")
    print("=" * 60)


def main(argv=None) -> int:
    """Main execution function."""
    load_dotenv()
    args = parse_args(argv)
    config_path = args.config or os.getenv("PANEL_CORPUS_CONFIG", "config.yaml")

    try:
        config_manager = ConfigManager(config_path)
    except ScrapingError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    storage_config = config_manager.get_storage_config()
    setup_logging(args.log_level, storage_config['log_dir'])
    logger = logging.getLogger(__name__)

    try:
        saver = DatasetSaver(storage_config)

        if args.stats_only:
            long = saver.load_dataset('long')
        else:
            logger.info("=" * 60)
            logger.info("Starting panel harvest")
            logger.info("=" * 60)
            orchestrator = Orchestrator(config_manager, saver=saver)
            try:
                result = orchestrator.run()
            finally:
                orchestrator.close()
            print_harvest_summary(result)
            long = result.long

        if args.no_stats:
            return 0

        stats_config = statistics_config(config_manager, args)
        tables = run_statistics(long, stats_config)
        for kind, table in tables.items():
            path = saver.save_table(table, table_name(kind, stats_config))
            logger.info(f"Saved {kind} table ({len(table)} rows) to {path}")

        print(f"\nTop {stats_config.n}-grams:")
        print(tables['frequency'].to_string(index=False))
        return 0

    except ScrapingError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
