import sqlite3
import os
import logging
from datetime import datetime
from typing import Dict, List, Optional
import pandas as pd

from layoffs_pipeline.config import CLEAN_TABLE

logger = logging.getLogger("layoffs_pipeline.gold")

# Calendar parts of the ISO `date` column
YEAR = "CAST(strftime('%Y', date) AS INTEGER)"
MONTH = "substr(date, 1, 7)"
QUARTER = "(CAST(strftime('%m', date) AS INTEGER) + 2) / 3"


def _sum_by(dimension: str) -> str:
    return f"""
        SELECT {dimension}, SUM(total_laid_off) AS total_laid_off
        FROM {CLEAN_TABLE}
        GROUP BY {dimension}
        ORDER BY total_laid_off DESC
    """


# Every report only reads the cleaned table; none depends on another's output.
REPORTS: Dict[str, str] = {
    "total_shutdowns": f"""
        SELECT *
        FROM {CLEAN_TABLE}
        WHERE CAST(percentage_laid_off AS REAL) = 1
        ORDER BY total_laid_off DESC
    """,
    "layoffs_by_company": _sum_by("company"),
    "layoffs_by_industry": _sum_by("industry"),
    "layoffs_by_country": _sum_by("country"),
    "layoffs_by_stage": _sum_by("stage"),
    "date_range": f"""
        SELECT MIN(date) AS first_date, MAX(date) AS last_date
        FROM {CLEAN_TABLE}
    """,
    "layoffs_by_year": f"""
        SELECT {YEAR} AS year, SUM(total_laid_off) AS total_laid_off
        FROM {CLEAN_TABLE}
        GROUP BY year
        ORDER BY year DESC
    """,
    "rolling_monthly_total": f"""
        WITH monthly AS (
            SELECT {MONTH} AS month, SUM(total_laid_off) AS total_laid_off
            FROM {CLEAN_TABLE}
            WHERE date IS NOT NULL
            GROUP BY month
        )
        SELECT
            month,
            total_laid_off,
            SUM(total_laid_off) OVER (
                ORDER BY month
                ROWS BETWEEN UNBOUNDED PRECEDING AND CURRENT ROW
            ) AS rolling_total
        FROM monthly
        ORDER BY month
    """,
    "top_companies_per_year": f"""
        WITH company_year AS (
            SELECT company, {YEAR} AS year, SUM(total_laid_off) AS total_laid_off
            FROM {CLEAN_TABLE}
            WHERE date IS NOT NULL
            GROUP BY company, year
        ),
        company_year_rank AS (
            SELECT
                company,
                year,
                total_laid_off,
                DENSE_RANK() OVER (PARTITION BY year ORDER BY total_laid_off DESC) AS ranking
            FROM company_year
        )
        SELECT company, year, total_laid_off, ranking
        FROM company_year_rank
        WHERE ranking <= 5
        ORDER BY year, ranking, company
    """,
    "quarterly_average": f"""
        SELECT
            {YEAR} AS year,
            {QUARTER} AS quarter,
            ROUND(AVG(total_laid_off), 2) AS avg_laid_off
        FROM {CLEAN_TABLE}
        WHERE date IS NOT NULL
        GROUP BY year, quarter
        ORDER BY year, quarter
    """,
    "top_funded_companies": f"""
        SELECT
            company,
            SUM(funds_raised_millions) AS total_funds_raised,
            SUM(total_laid_off) AS total_laid_off
        FROM {CLEAN_TABLE}
        GROUP BY company
        ORDER BY total_funds_raised DESC
        LIMIT 5
    """,
    "industry_average": f"""
        SELECT industry, AVG(total_laid_off) AS avg_laid_off
        FROM {CLEAN_TABLE}
        GROUP BY industry
        ORDER BY avg_laid_off DESC
    """,
    # LAG looks at the previous year present for the industry, not year - 1
    "industry_yoy_change": f"""
        WITH industry_year AS (
            SELECT industry, {YEAR} AS year, SUM(total_laid_off) AS total_laid_off
            FROM {CLEAN_TABLE}
            WHERE date IS NOT NULL
            GROUP BY industry, year
        ),
        industry_year_lag AS (
            SELECT
                industry,
                year,
                total_laid_off,
                LAG(total_laid_off) OVER (PARTITION BY industry ORDER BY year) AS previous_total
            FROM industry_year
        )
        SELECT
            industry,
            year,
            total_laid_off,
            previous_total,
            ROUND(CAST(total_laid_off - previous_total AS REAL) / previous_total * 100, 2) AS pct_change
        FROM industry_year_lag
        ORDER BY industry, year
    """,
    "top_date_industry": f"""
        SELECT date, industry, SUM(total_laid_off) AS total_laid_off
        FROM {CLEAN_TABLE}
        GROUP BY date, industry
        ORDER BY total_laid_off DESC
        LIMIT 3
    """,
}


def list_reports() -> List[str]:
    return list(REPORTS)


def run_report(conn: sqlite3.Connection, name: str) -> pd.DataFrame:
    """
    Run one report from the catalog against an open connection.

    Args:
        conn: Connection to a database holding the cleaned table
        name: Report name, one of REPORTS

    Returns:
        The report result set

    Raises:
        KeyError: If the report name is not in the catalog
    """
    if name not in REPORTS:
        raise KeyError(f"Unknown report: {name}")
    return pd.read_sql(REPORTS[name], conn)


def run_all_reports(db_file: str) -> Dict[str, pd.DataFrame]:
    """Run every report in the catalog and return the results by name."""
    conn = sqlite3.connect(db_file)
    try:
        results = {}
        for name in REPORTS:
            results[name] = run_report(conn, name)
            logger.info(f"Report '{name}' returned {len(results[name])} rows")
        return results
    finally:
        conn.close()


def export_reports(db_file: str, output_dir: str, timestamp: Optional[str] = None) -> Dict[str, str]:
    """
    Export every report to its own Parquet file.

    Args:
        db_file: Path to the SQLite database file
        output_dir: Directory to save the exported files
        timestamp: File name prefix, defaults to the current time

    Returns:
        Dictionary mapping report names to exported file paths; empty on failure
    """
    try:
        os.makedirs(output_dir, exist_ok=True)
        ts = timestamp or datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

        exported = {}
        for name, df in run_all_reports(db_file).items():
            output_file = os.path.join(output_dir, f"{ts}_report_{name}.parquet")
            df.to_parquet(output_file, index=False)
            exported[name] = output_file
        logger.info(f"Exported {len(exported)} reports to {output_dir}")
        return exported

    except (sqlite3.Error, pd.errors.DatabaseError, OSError) as e:
        logger.error(f"Error exporting reports: {e}")
        return {}
