import os
import argparse
from datetime import datetime, timedelta
from typing import List, Optional
import numpy as np
import pandas as pd

COMPANIES = {
    "Amazon": ("Seattle", "Retail", "Post-IPO", "United States", 108),
    "Meta": ("SF Bay Area", "Consumer", "Post-IPO", "United States", 26000),
    "Coinbase": ("SF Bay Area", "Crypto", "Post-IPO", "United States", 549),
    "Gemini": ("New York City", "Crypto Currency", "Unknown", "United States", 423),
    "Shopify": ("Ottawa", "Retail", "Post-IPO", "Canada", 122),
    "Airbnb": ("SF Bay Area", "Travel", "Post-IPO", "United States", 6400),
    "Bolt": ("Lagos", "Transportation", "Series F", "Nigeria", 1700),
    "Juul": ("SF Bay Area", "Consumer", "Unknown", "United States.", 1500),
    "Bally's Interactive": ("Providence", "Media", "Post-IPO", "United States", 946),
    "Carvana": ("Phoenix", "Transportation", "Post-IPO", "United States", 1600),
}
BLANK_INDUSTRY_COMPANIES = ["Bally's Interactive", "Airbnb"]


def random_date(start: datetime, end: datetime) -> str:
    days = int(np.random.randint(0, (end - start).days + 1))
    date = start + timedelta(days=days)
    return f"{date.month}/{date.day}/{date.year}"


def generate_layoff_data(num_records: int = 500, seed: Optional[int] = None) -> List[dict]:
    """
    Generate layoff records with the defects the cleaning layer has to fix:
    padded company names, crypto and United States variants, blank industries,
    NULL metrics and exact duplicate rows.
    """
    if seed is not None:
        np.random.seed(seed)

    start, end = datetime(2020, 3, 1), datetime(2023, 3, 31)
    names = list(COMPANIES)
    records = []
    for _ in range(num_records):
        company = names[np.random.randint(len(names))]
        location, industry, stage, country, funds = COMPANIES[company]
        if company in BLANK_INDUSTRY_COMPANIES and np.random.rand() < 0.3:
            industry = ""
        if np.random.rand() < 0.1:
            company = company + " "

        total = "NULL" if np.random.rand() < 0.2 else str(np.random.randint(10, 2000))
        percentage = "NULL" if np.random.rand() < 0.3 else str(np.random.choice(["0.05", "0.1", "0.25", "0.5", "1"]))
        records.append({
            "company": company,
            "location": location,
            "industry": industry,
            "total_laid_off": total,
            "percentage_laid_off": percentage,
            "date": random_date(start, end),
            "stage": stage,
            "country": country,
            "funds_raised_millions": str(funds),
        })

    # Exact duplicates of a few records
    duplicate_count = max(1, num_records // 50)
    for idx in np.random.randint(0, len(records), size=duplicate_count):
        records.append(dict(records[idx]))
    return records


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Generate a synthetic layoffs CSV')
    parser.add_argument('--records', type=int, default=500, help='Number of records to generate')
    parser.add_argument('--seed', type=int, help='Random seed')
    args = parser.parse_args()

    BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__)))
    output_dir = os.path.join(BASE_DIR, "data", "sample")
    os.makedirs(output_dir, exist_ok=True)
    output_file = os.path.join(output_dir, "layoffs.csv")
    df = pd.DataFrame(generate_layoff_data(args.records, seed=args.seed))
    df.to_csv(output_file, index=False)
    print(f"Generated CSV file at: {output_file}")
