#!/usr/bin/env python3
"""
Layoffs ETL Pipeline

Runs the layoffs dataset through the bronze (raw + staging copy), silver
(deduplicated, standardized, null-resolved) and gold (report catalog) layers,
exports the cleaned table and every report to Parquet, and optionally
publishes the exports to S3.
"""

import os
import sys
import sqlite3
import logging
import argparse
from datetime import datetime
from typing import Dict, List, Optional
import pandas as pd

from layoffs_pipeline import config
from layoffs_pipeline.bronze import ingest_layoffs, create_staging_copy
from layoffs_pipeline.errors import PipelineError
from layoffs_pipeline.gold import export_reports, list_reports, run_report
from layoffs_pipeline.silver import transform_staging_to_silver
from layoffs_pipeline.storage import upload_files
from utils.logger import setup_logger

logger = logging.getLogger("layoffs_pipeline.run")


def export_table_to_parquet(db_file: str, table_name: str, output_file: str) -> Optional[str]:
    # Connect to the database and query the specified table
    conn = sqlite3.connect(db_file)
    try:
        df = pd.read_sql(f"SELECT * FROM {table_name}", conn)
    except pd.errors.DatabaseError as e:
        logger.error(f"Error reading table '{table_name}' from {db_file}: {e}")
        return None
    finally:
        conn.close()

    if df.empty:
        logger.warning(f"Table '{table_name}' in {db_file} is empty. No data to export.")
        return None
    df.to_parquet(output_file, index=False)
    logger.info(f"Exported {len(df)} records from table '{table_name}' to {output_file}")
    return output_file


class LayoffsPipeline:
    """Owns the database file and runs every layer of the layoffs pipeline."""

    def __init__(self, db_path: str = config.DB_FILE, export_dir: str = config.EXPORT_DIR):
        self.db_path = db_path
        self.export_dir = export_dir

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def export_data(self, timestamp: Optional[str] = None) -> List[str]:
        """
        Export the cleaned table and every report to Parquet.

        Returns:
            Paths of the files written
        """
        os.makedirs(self.export_dir, exist_ok=True)
        ts = timestamp or datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

        exported = []
        clean_file = export_table_to_parquet(
            self.db_path,
            config.CLEAN_TABLE,
            os.path.join(self.export_dir, f"{ts}_{config.CLEAN_TABLE}.parquet"),
        )
        if clean_file:
            exported.append(clean_file)
        exported.extend(export_reports(self.db_path, self.export_dir, timestamp=ts).values())
        return exported

    def get_layer_stats(self) -> Dict[str, int]:
        """
        Get record counts for each table; a missing table counts as -1.
        """
        stats = {}
        conn = self.connect()
        try:
            cursor = conn.cursor()
            for table in (config.RAW_TABLE, config.STAGING_TABLE, config.CLEAN_TABLE):
                try:
                    cursor.execute(f"SELECT COUNT(*) FROM {table}")
                    stats[table] = cursor.fetchone()[0]
                except sqlite3.OperationalError:
                    stats[table] = -1
        finally:
            conn.close()
        return stats

    def run(self, csv_file: Optional[str] = None, s3_bucket: Optional[str] = None) -> List[str]:
        """
        Run the full pipeline.

        Args:
            csv_file: Raw CSV to ingest; omitted when the raw table is already loaded
            s3_bucket: Bucket to publish the exports to; None skips publishing

        Returns:
            Paths of the exported files

        Raises:
            PipelineError: If any layer fails
        """
        logger.info("Starting layoffs pipeline...")

        # Bronze layer
        if csv_file and not os.path.exists(csv_file):
            if not os.path.exists(self.db_path) or self.get_layer_stats()[config.RAW_TABLE] <= 0:
                raise PipelineError(f"CSV file not found: {csv_file}")
            logger.warning(f"CSV file not found: {csv_file}. Using the raw table already loaded.")
        elif csv_file:
            if not ingest_layoffs(csv_file, self.db_path):
                raise PipelineError("Bronze layer ingestion failed")
        if not create_staging_copy(self.db_path):
            raise PipelineError("Bronze layer staging copy failed")
        logger.info("Bronze layer processing completed successfully.")

        # Silver layer
        if not transform_staging_to_silver(self.db_path):
            raise PipelineError("Silver layer processing failed")
        logger.info("Silver layer processing completed successfully.")

        # Gold layer exports
        exported = self.export_data()
        if not exported:
            raise PipelineError("Gold layer export produced no files")
        logger.info(f"Exported {len(exported)} files to {self.export_dir}")

        if s3_bucket:
            results = upload_files(exported, s3_bucket, prefix=datetime.now().strftime("%Y/%m/%d"))
            failed = [path for path, ok in results.items() if not ok]
            if failed:
                raise PipelineError(f"Failed to publish {len(failed)} files to s3://{s3_bucket}")

        logger.info(f"Pipeline completed successfully. Layer statistics: {self.get_layer_stats()}")
        return exported


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Clean the layoffs dataset and run the report catalog')
    parser.add_argument('--csv', type=str, default=config.CSV_FILE, help='Path to the raw layoffs CSV')
    parser.add_argument('--db', type=str, default=config.DB_FILE, help='Path to SQLite database')
    parser.add_argument('--export-dir', type=str, default=config.EXPORT_DIR, help='Directory for exported files')
    parser.add_argument('--s3-bucket', type=str, default=config.S3_BUCKET, help='S3 bucket to publish exports to')
    parser.add_argument('--log-dir', type=str, default=config.LOG_DIR, help='Directory for log files')
    parser.add_argument('--report', type=str, help='Print a single report from the cleaned table and exit')
    parser.add_argument('--list-reports', action='store_true', help='List the available reports and exit')
    parser.add_argument('--export-only', action='store_true', help='Only export data without processing')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point for the pipeline."""
    args = build_parser().parse_args(argv)
    setup_logger("layoffs_pipeline", log_file="layoffs_pipeline.log", log_dir=args.log_dir)

    if args.list_reports:
        print("\n".join(list_reports()))
        return 0

    pipeline = LayoffsPipeline(db_path=args.db, export_dir=args.export_dir)

    if args.report:
        conn = pipeline.connect()
        try:
            df = run_report(conn, args.report)
        except KeyError as e:
            print(f"{e.args[0]}. Use --list-reports to see the catalog.", file=sys.stderr)
            return 2
        except pd.errors.DatabaseError as e:
            print(f"Could not run report '{args.report}': {e}", file=sys.stderr)
            return 1
        finally:
            conn.close()
        print(df.to_string(index=False))
        return 0

    try:
        if args.export_only:
            exported = pipeline.export_data()
        else:
            exported = pipeline.run(csv_file=args.csv, s3_bucket=args.s3_bucket)
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    print("Pipeline execution completed:")
    for path in exported:
        print(f"  {path}")

    stats = pipeline.get_layer_stats()
    print("\nLayer statistics:")
    for table, count in stats.items():
        print(f"{table}: {count} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
