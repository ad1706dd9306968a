import csv
import logging
import sqlite3

import pandas as pd
import pytest

from layoffs_pipeline.config import COLUMNS
from layoffs_pipeline.silver import create_clean_table


def raw_row(company="Acme", location="SF Bay Area", industry="Retail", total="100",
            percentage="0.1", date="3/1/2023", stage="Post-IPO", country="United States",
            funds="500"):
    return {
        "company": company,
        "location": location,
        "industry": industry,
        "total_laid_off": total,
        "percentage_laid_off": percentage,
        "date": date,
        "stage": stage,
        "country": country,
        "funds_raised_millions": funds,
    }


def write_csv(path, rows):
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    return str(path)


def staging_frame(rows):
    """A staging-shaped frame built from raw CSV-style rows."""
    rows = [{k: (None if v == "NULL" else v) for k, v in row.items()} for row in rows]
    df = pd.DataFrame(rows, columns=COLUMNS)
    for col in ("total_laid_off", "funds_raised_millions"):
        df[col] = pd.to_numeric(df[col]).astype("Int64")
    return df


def clean_row(company="Acme", location="SF Bay Area", industry="Retail", total=100,
              percentage="0.1", date="2023-03-01", stage="Post-IPO", country="United States",
              funds=500):
    return (company, location, industry, total, percentage, date, stage, country, funds)


def load_clean_rows(conn, rows):
    cursor = conn.cursor()
    create_clean_table(cursor)
    cursor.executemany(
        f"INSERT INTO layoffs_staging2 ({', '.join(COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        rows,
    )
    conn.commit()


@pytest.fixture
def db_file(tmp_path):
    return str(tmp_path / "layoffs.db")


@pytest.fixture
def dirty_rows():
    return [
        raw_row(company="Netflix ", industry="Crypto Exchange", total="100", percentage="1",
                country="United States.", funds="500"),
        raw_row(company="Acme", industry="Retail", total="50"),
        raw_row(company="Acme", industry="Retail", total="50"),
        raw_row(company="Acme", industry="", total="20", date="6/15/2022"),
        raw_row(company="Ghost", industry="Media", total="NULL", percentage="NULL"),
        raw_row(company="Loner", industry="", total="30", percentage="NULL", date="not a date",
                country="Germany"),
    ]


@pytest.fixture
def dirty_csv(tmp_path, dirty_rows):
    return write_csv(tmp_path / "layoffs.csv", dirty_rows)


@pytest.fixture
def clean_conn():
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger("layoffs_pipeline")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
