import sqlite3
import logging
from typing import List
import pandas as pd

from layoffs_pipeline.config import COLUMNS, STAGING_TABLE, CLEAN_TABLE

logger = logging.getLogger("layoffs_pipeline.silver")

BUSINESS_KEY = list(COLUMNS)
DATE_FORMAT = "%m/%d/%Y"
INTEGER_COLUMNS = ["total_laid_off", "funds_raised_millions"]

CANONICAL_INDUSTRY = "Crypto"
CANONICAL_COUNTRY = "United States"


def create_clean_table(cursor):
    """
    Create the cleaned layoffs table if it doesn't already exist.
    """
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {CLEAN_TABLE} (
            company TEXT,
            location TEXT,
            industry TEXT,
            total_laid_off INTEGER,
            percentage_laid_off TEXT,
            date DATE,
            stage TEXT,
            country TEXT,
            funds_raised_millions INTEGER
        )
    """)


def _with_integer_columns(df: pd.DataFrame) -> pd.DataFrame:
    # SQLite hands back NULL-bearing integer columns as floats
    for col in INTEGER_COLUMNS:
        df[col] = df[col].astype("Int64")
    return df


def read_staging(conn: sqlite3.Connection) -> pd.DataFrame:
    df = pd.read_sql(f"SELECT {', '.join(COLUMNS)} FROM {STAGING_TABLE}", conn)
    return _with_integer_columns(df)


def read_clean_table(conn: sqlite3.Connection) -> pd.DataFrame:
    """Load the cleaned table with `date` parsed back into a datetime column."""
    df = pd.read_sql(
        f"SELECT {', '.join(COLUMNS)} FROM {CLEAN_TABLE}",
        conn,
        parse_dates=["date"],
    )
    return _with_integer_columns(df)


# Deduplication

def remove_duplicates(df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep the first row of every group sharing the whole business key.

    Rows are numbered within each group in table order and every row after
    the first is dropped. Nulls compare equal, so two rows that are both
    missing the same fields still count as duplicates.
    """
    duplicate_mask = df.duplicated(subset=BUSINESS_KEY, keep='first')
    duplicate_count = int(duplicate_mask.sum())
    if duplicate_count > 0:
        logger.info(f"Removed {duplicate_count} duplicate records")
    return df.loc[~duplicate_mask].reset_index(drop=True)


# Standardization

def trim_company(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df['company'] = df['company'].str.strip()
    return df


def _collapse_prefix(series: pd.Series, prefix: str) -> pd.Series:
    matches = series.str.startswith(prefix, na=False)
    series = series.copy()
    series.loc[matches] = prefix
    return series


def collapse_industry(df: pd.DataFrame) -> pd.DataFrame:
    """Rewrite every industry starting with "Crypto" to exactly "Crypto"."""
    df = df.copy()
    df['industry'] = _collapse_prefix(df['industry'], CANONICAL_INDUSTRY)
    return df


def collapse_country(df: pd.DataFrame) -> pd.DataFrame:
    """Rewrite every country starting with "United States" to exactly "United States"."""
    df = df.copy()
    df['country'] = _collapse_prefix(df['country'], CANONICAL_COUNTRY)
    return df


def coerce_dates(df: pd.DataFrame) -> pd.DataFrame:
    """
    Parse `date` from MM/DD/YYYY text into a datetime column.

    Empty or unparsable text becomes NaT. A column that is already datetime
    is left as it is, so the conversion happens once.
    """
    if pd.api.types.is_datetime64_any_dtype(df['date']):
        return df
    df = df.copy()
    df['date'] = pd.to_datetime(df['date'].str.strip(), format=DATE_FORMAT, errors='coerce')
    return df


def standardize(df: pd.DataFrame) -> pd.DataFrame:
    """Apply every column normalization. Running it twice changes nothing."""
    df = trim_company(df)
    df = collapse_industry(df)
    df = collapse_country(df)
    return coerce_dates(df)


# Null resolution

def clear_empty_industry(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    blank = df['industry'].str.strip().eq('').fillna(False).astype(bool)
    df.loc[blank, 'industry'] = None
    return df


def backfill_industry(df: pd.DataFrame, key: str = 'company') -> pd.DataFrame:
    """
    Fill null industries from another record with the same key.

    The donor lookup is built once, from the values that are non-null before
    any fill, and applied in a single pass. The first donor in table order
    wins when a company has several industries. Values filled during the pass
    are never used as donors themselves. A null key matches nothing.
    """
    df = df.copy()
    has_donor = df[key].notna() & df['industry'].notna()
    donors = df.loc[has_donor, [key, 'industry']].drop_duplicates(subset=key, keep='first')
    lookup = donors.set_index(key)['industry']

    missing = df['industry'].isna()
    df.loc[missing, 'industry'] = df.loc[missing, key].map(lookup)

    filled = int((missing & df['industry'].notna()).sum())
    logger.info(f"Backfilled industry for {filled} of {int(missing.sum())} records")
    return df


def drop_empty_metrics(df: pd.DataFrame) -> pd.DataFrame:
    """Drop rows with neither `total_laid_off` nor `percentage_laid_off`."""
    empty = df['total_laid_off'].isna() & df['percentage_laid_off'].isna()
    if empty.any():
        logger.info(f"Dropped {int(empty.sum())} records without layoff metrics")
    return df.loc[~empty].reset_index(drop=True)


def resolve_nulls(df: pd.DataFrame) -> pd.DataFrame:
    df = clear_empty_industry(df)
    df = backfill_industry(df)
    return drop_empty_metrics(df)


def clean_layoffs(df: pd.DataFrame) -> pd.DataFrame:
    """
    Run the whole cleaning sequence over a staging frame.

    Deduplication runs again at the end because trimming and normalization
    can make previously distinct rows identical.
    """
    df = remove_duplicates(df)
    df = standardize(df)
    df = resolve_nulls(df)
    return remove_duplicates(df)


def validate_cleaned(df: pd.DataFrame) -> List[str]:
    """
    Check the invariants of the cleaned table.

    Returns:
        A list of violation messages, empty when the frame is clean
    """
    violations = []

    duplicate_count = int(df.duplicated(subset=BUSINESS_KEY).sum())
    if duplicate_count:
        violations.append(f"{duplicate_count} duplicate records")

    empty_metrics = int((df['total_laid_off'].isna() & df['percentage_laid_off'].isna()).sum())
    if empty_metrics:
        violations.append(f"{empty_metrics} records without layoff metrics")

    company = df['company'].dropna()
    padded = int((company != company.str.strip()).sum())
    if padded:
        violations.append(f"{padded} company names with surrounding whitespace")

    for col, canonical in (('industry', CANONICAL_INDUSTRY), ('country', CANONICAL_COUNTRY)):
        values = df[col].dropna()
        stray = int((values.str.startswith(canonical) & (values != canonical)).sum())
        if stray:
            violations.append(f"{stray} {col} values not collapsed to '{canonical}'")

    donors = set(df.loc[df['company'].notna() & df['industry'].notna(), 'company'])
    unfilled = int((df['industry'].isna() & df['company'].isin(donors)).sum())
    if unfilled:
        violations.append(f"{unfilled} null industries with an available donor")

    if not pd.api.types.is_datetime64_any_dtype(df['date']):
        violations.append("date column is not a date type")

    return violations


def to_storage_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Render dates as ISO text, the way SQLite stores DATE values."""
    df = df.copy()
    iso = df['date'].dt.strftime('%Y-%m-%d')
    df['date'] = iso.where(df['date'].notna(), None)
    return df


def transform_staging_to_silver(db_file: str) -> bool:
    """
    Clean the staging table into the cleaned layoffs table.

    The cleaned table is rebuilt on every run from the current staging rows.
    """
    conn = None
    try:
        conn = sqlite3.connect(db_file)
        staging_df = read_staging(conn)
        logger.info(f"Read {len(staging_df)} records from staging for silver transformation.")

        clean_df = clean_layoffs(staging_df)

        violations = validate_cleaned(clean_df)
        if violations:
            logger.error(f"Cleaned data failed validation: {'; '.join(violations)}")
            return False

        cursor = conn.cursor()
        cursor.execute(f"DROP TABLE IF EXISTS {CLEAN_TABLE}")
        create_clean_table(cursor)
        to_storage_frame(clean_df).to_sql(CLEAN_TABLE, conn, if_exists='append', index=False)
        conn.commit()
        logger.info(f"Successfully wrote {len(clean_df)} cleaned records into silver layer.")
        return True

    except (sqlite3.Error, pd.errors.DatabaseError, KeyError, ValueError) as e:
        logger.error(f"Error during silver layer transformation: {e}")
        if conn:
            conn.rollback()
        return False

    finally:
        if conn:
            conn.close()
