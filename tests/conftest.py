"""
Pytest configuration file.
"""
from logging import INFO, basicConfig, getLogger

import boto3
import pytest
from mypy_boto3_s3 import S3Client

from s3_gunzip.boto3_config import CONFIG

basicConfig(level=INFO)
logger = getLogger(__name__)


@pytest.fixture()
def s3_client() -> S3Client:
    return boto3.client("s3", config=CONFIG)
