"""
S3 publishing for exported pipeline outputs.

Uploads are retried a fixed number of times on client and connection errors;
a file that still fails is logged and reported back to the caller.
"""

import os
import time
import logging
from pathlib import Path
from typing import Dict, List, Optional
import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError, EndpointConnectionError

from layoffs_pipeline import config

logger = logging.getLogger("layoffs_pipeline.storage")

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2  # seconds

CONTENT_TYPES = {
    '.parquet': 'application/vnd.apache-parquet',
    '.csv': 'text/csv',
    '.db': 'application/vnd.sqlite3',
}


def create_s3_client(region: Optional[str] = None):
    return boto3.client('s3',
                        aws_access_key_id=config.AWS_ACCESS_KEY_ID,
                        aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
                        region_name=region or config.AWS_REGION)


def content_type_for(file_path: str) -> str:
    return CONTENT_TYPES.get(Path(file_path).suffix.lower(), 'application/octet-stream')


def upload_file_to_s3(
        local_file: str,
        bucket: str,
        s3_key: Optional[str] = None,
        s3_client=None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY
) -> bool:
    """
    Upload a local file to the specified bucket and key.

    Args:
        local_file: Path to the file to upload
        bucket: Target bucket name
        s3_key: Object key, defaults to the file's base name
        s3_client: boto3 S3 client, created from configuration when omitted
        retry_attempts: Number of attempts before giving up
        retry_delay: Delay between attempts in seconds

    Returns:
        True if the upload succeeded, False otherwise
    """
    s3_key = s3_key or os.path.basename(local_file)
    s3_client = s3_client or create_s3_client()
    extra_args = {'ContentType': content_type_for(local_file)}

    for attempt in range(1, retry_attempts + 1):
        try:
            s3_client.upload_file(local_file, bucket, s3_key, ExtraArgs=extra_args)
            logger.info(f"Uploaded {local_file} to s3://{bucket}/{s3_key}")
            return True
        except (ClientError, EndpointConnectionError, S3UploadFailedError) as e:
            logger.warning(f"Upload attempt {attempt} of {local_file} to s3://{bucket}/{s3_key} failed: {e}")
            if attempt < retry_attempts:
                time.sleep(retry_delay)

    logger.error(f"Failed to upload {local_file} to s3://{bucket}/{s3_key} after {retry_attempts} attempts")
    return False


def upload_files(
        files: List[str],
        bucket: str,
        prefix: str = "",
        s3_client=None,
        **kwargs
) -> Dict[str, bool]:
    """
    Upload several files under an optional key prefix.

    Returns:
        Dictionary mapping each local file to whether it was uploaded
    """
    s3_client = s3_client or create_s3_client()
    results = {}
    for local_file in files:
        s3_key = f"{prefix.rstrip('/')}/{os.path.basename(local_file)}" if prefix else None
        results[local_file] = upload_file_to_s3(local_file, bucket, s3_key, s3_client=s3_client, **kwargs)

    uploaded = sum(results.values())
    logger.info(f"Uploaded {uploaded} of {len(files)} files to s3://{bucket}/{prefix}")
    return results
