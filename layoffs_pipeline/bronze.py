import sqlite3
import csv
import os
import logging
import numpy as np
import pandas as pd

from layoffs_pipeline.config import COLUMNS, RAW_TABLE, STAGING_TABLE

logger = logging.getLogger("layoffs_pipeline.bronze")

INTEGER_COLUMNS = ["total_laid_off", "funds_raised_millions"]


def create_layoffs_table(cursor, table_name: str = RAW_TABLE):
    """
    Create a raw-layout layoffs table if it doesn't already exist.

    The raw table and the staging table share this layout, so cloning the
    schema is a second call with a different name.
    """
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {table_name} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER,
            percentage_laid_off TEXT,
            date TEXT,
            stage TEXT,
            country TEXT,
            funds_raised_millions INTEGER
        )
    """)


def validate_csv_structure(csv_file: str, required_columns: list) -> bool:
    """
    Validate the structure of the CSV file.

    Args:
        csv_file: Path to the CSV file
        required_columns: List of required column names

    Returns:
        True if the CSV structure is valid, False otherwise
    """
    try:
        with open(csv_file, newline='', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            csv_columns = reader.fieldnames
            if not csv_columns:
                logger.error("CSV file is empty or has no headers.")
                return False
            missing_columns = [col for col in required_columns if col not in csv_columns]
            if missing_columns:
                logger.error(f"CSV file is missing required columns: {missing_columns}")
                return False
        return True
    except OSError as e:
        logger.error(f"Error validating CSV structure: {e}")
        return False


def round_half_away(values: pd.Series) -> pd.Series:
    """Round to whole numbers with halves going away from zero (2.5 -> 3, -2.5 -> -3)."""
    return np.sign(values) * np.floor(values.abs() + 0.5)


def read_layoffs_csv(csv_file: str) -> pd.DataFrame:
    """
    Read the raw CSV into the raw table layout.

    The literal text NULL is a true null. Count columns become nullable
    integers, an empty percentage is null, and an empty industry is kept as
    the empty-string sentinel for the silver layer to clear.
    """
    df = pd.read_csv(
        csv_file,
        dtype=str,
        keep_default_na=False,
        na_values=["NULL"],
        usecols=COLUMNS,
    )
    df = df[COLUMNS].copy()

    for col in INTEGER_COLUMNS:
        df[col] = round_half_away(pd.to_numeric(df[col].str.strip(), errors='coerce')).astype("Int64")

    percentage = df['percentage_laid_off'].str.strip()
    df['percentage_laid_off'] = percentage.where(percentage != '', None)
    return df


def count_rows(cursor, table_name: str) -> int:
    cursor.execute(f"SELECT COUNT(*) FROM {table_name}")
    return cursor.fetchone()[0]


def ingest_layoffs(csv_file: str, db_file: str, replace: bool = False) -> bool:
    """
    Ingest data from a CSV file into the raw layoffs table.

    The raw table is immutable once loaded: a populated table is left alone
    unless replace is set.

    Args:
        csv_file: Path to the CSV file
        db_file: Path to the SQLite database file
        replace: Reload the raw table even if it already holds rows

    Returns:
        True if ingestion is successful, False otherwise
    """
    if not validate_csv_structure(csv_file, COLUMNS):
        logger.error("CSV structure validation failed. Aborting ingestion.")
        return False

    conn = None
    try:
        # Ensure the directory for the database exists
        db_dir = os.path.dirname(db_file)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        conn = sqlite3.connect(db_file)
        cursor = conn.cursor()

        if replace:
            cursor.execute(f"DROP TABLE IF EXISTS {RAW_TABLE}")
        create_layoffs_table(cursor, RAW_TABLE)
        conn.commit()

        existing = count_rows(cursor, RAW_TABLE)
        if existing:
            logger.info(f"Raw table already holds {existing} records. Skipping ingestion.")
            return True

        df = read_layoffs_csv(csv_file)
        df.to_sql(RAW_TABLE, conn, if_exists='append', index=False)
        conn.commit()
        logger.info(f"Successfully ingested {len(df)} records into bronze layer.")
        return True

    except (sqlite3.Error, ValueError, TypeError) as e:
        logger.error(f"Error during data ingestion: {e}")
        return False

    finally:
        if conn:
            conn.close()


def create_staging_copy(db_file: str) -> bool:
    """
    Rebuild the staging table as a full copy of the raw table.

    The staging table is dropped first, so every run starts from the raw data
    and nothing written during cleaning can reach the raw table.
    """
    conn = None
    try:
        conn = sqlite3.connect(db_file)
        cursor = conn.cursor()

        cursor.execute(f"DROP TABLE IF EXISTS {STAGING_TABLE}")
        create_layoffs_table(cursor, STAGING_TABLE)
        column_list = ", ".join(COLUMNS)
        cursor.execute(f"""
            INSERT INTO {STAGING_TABLE} ({column_list})
            SELECT {column_list} FROM {RAW_TABLE}
        """)
        conn.commit()

        copied = count_rows(cursor, STAGING_TABLE)
        logger.info(f"Copied {copied} records from {RAW_TABLE} into {STAGING_TABLE}.")
        return True

    except sqlite3.Error as e:
        logger.error(f"Error creating staging copy: {e}")
        return False

    finally:
        if conn:
            conn.close()
