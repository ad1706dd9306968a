import os
from dotenv import load_dotenv

load_dotenv()  # load environment variables from .env file

# Input and storage locations
CSV_FILE = os.environ.get("LAYOFFS_CSV_PATH", os.path.join("data", "sample", "layoffs.csv"))
DB_FILE = os.environ.get("LAYOFFS_DB_PATH", os.path.join("data", "layoffs.db"))
EXPORT_DIR = os.environ.get("LAYOFFS_EXPORT_DIR", os.path.join("data", "exports"))
LOG_DIR = os.environ.get("LAYOFFS_LOG_DIR", "logs")

# Publishing is disabled unless a bucket is configured
S3_BUCKET = os.environ.get("LAYOFFS_S3_BUCKET")

# Read AWS credentials and region from environment variables
AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")

# Table names for each layer
RAW_TABLE = "layoffs"
STAGING_TABLE = "layoffs_staging"
CLEAN_TABLE = "layoffs_staging2"

# Column order shared by every layer; the whole tuple is the business key
COLUMNS = [
    "company",
    "location",
    "industry",
    "total_laid_off",
    "percentage_laid_off",
    "date",
    "stage",
    "country",
    "funds_raised_millions",
]
