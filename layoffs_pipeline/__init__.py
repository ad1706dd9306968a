"""
Layoffs ETL Package

Modules:
    bronze.py   - Ingests the raw layoffs CSV and clones it into a staging table.
    silver.py   - Deduplicates, standardizes and resolves nulls into the cleaned table.
    gold.py     - Catalog of read-only aggregate reports over the cleaned table.
    storage.py  - Publishes exported files to S3.
    run_pipeline.py - Orchestrates the full pipeline and exports outputs.

Version: 1.0.0
"""

from layoffs_pipeline.errors import PipelineError

__version__ = "1.0.0"

__all__ = ["PipelineError", "__version__"]
