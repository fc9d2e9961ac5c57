from functools import lru_cache
from typing import TYPE_CHECKING

import boto3

from .boto3_config import CONFIG

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client
else:
    S3Client = object  # pragma: no mutate


S3_SCHEMA = "s3"
S3_URL_PREFIX = f"{S3_SCHEMA}://"

CHUNK_SIZE = 65_536
PIPE_CAPACITY = 8 * CHUNK_SIZE

# Smallest part size S3 accepts for all but the last part of a multipart upload
UPLOAD_PART_SIZE = 5 * 1024 * 1024

GZIP_SUFFIX = ".gz"
PLAIN_TEXT_CONTENT_TYPE = "text/plain"


@lru_cache
def get_s3_client() -> S3Client:
    client: S3Client = boto3.client("s3", config=CONFIG)
    return client


def get_s3_url(bucket_name: str, key: str) -> str:
    return f"{S3_URL_PREFIX}{bucket_name}/{key}"
