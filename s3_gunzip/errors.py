from typing import Sequence


class TransferError(Exception):
    """Failure to gunzip one source object into the destination bucket."""

    def __init__(self, bucket_name: str, key: str, reason: str):
        super().__init__(f"{reason} (s3://{bucket_name}/{key})")
        self.bucket_name = bucket_name
        self.key = key
        self.reason = reason


class DownloadError(TransferError):
    pass


class DecompressionError(TransferError):
    pass


class UploadError(TransferError):
    pass


class InvalidKeyError(TransferError):
    pass


class BatchFailedError(Exception):
    def __init__(self, failed_keys: Sequence[str]):
        super().__init__(f"Failed to gunzip {len(failed_keys)} object(s): {', '.join(failed_keys)}")
        self.failed_keys = list(failed_keys)
