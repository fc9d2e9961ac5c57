import zlib
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from functools import partial
from gzip import BadGzipFile
from typing import TYPE_CHECKING, NamedTuple, Optional, cast

import smart_open
from botocore.exceptions import BotoCoreError, ClientError
from linz_logger import get_log

from ..errors import DecompressionError, DownloadError, InvalidKeyError, TransferError, UploadError
from ..gunzip_reader import open_gunzip_reader
from ..logging_keys import (
    ERROR_KEY,
    LOG_MESSAGE_DOWNLOAD_COMPLETE,
    LOG_MESSAGE_TRANSFER_COMPLETE,
    LOG_MESSAGE_TRANSFER_FAILED,
)
from ..pipe import PipeAbortedError, PipeClosedError, PipeReader, PipeWriter, open_pipe
from ..s3 import (
    CHUNK_SIZE,
    GZIP_SUFFIX,
    PIPE_CAPACITY,
    PLAIN_TEXT_CONTENT_TYPE,
    UPLOAD_PART_SIZE,
    get_s3_url,
)
from ..types import JsonObject

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client
else:
    S3Client = object  # pragma: no mutate

S3_BODY_KEY = "Body"
NO_COMPRESSION = "disable"

LOGGER = get_log()


class Outcome(Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class TransferRequest(NamedTuple):
    source_bucket_name: str
    destination_bucket_name: str
    key: str

    @property
    def destination_key(self) -> str:
        return get_destination_key(self.key)


class UploadSummary(NamedTuple):
    location: str
    bytes_uploaded: int


class TransferResult:
    # pylint: disable=too-few-public-methods
    def __init__(
        self,
        request: TransferRequest,
        bytes_downloaded: int = 0,
        bytes_uploaded: int = 0,
        location: Optional[str] = None,
        error: Optional[TransferError] = None,
    ):
        self.request = request
        self.bytes_downloaded = bytes_downloaded
        self.bytes_uploaded = bytes_uploaded
        self.location = location
        self.error = error

    @property
    def outcome(self) -> Outcome:
        return Outcome.FAILED if self.error is not None else Outcome.SUCCEEDED

    def to_json(self) -> JsonObject:
        result: JsonObject = {
            "source_bucket": self.request.source_bucket_name,
            "key": self.request.key,
            "destination_bucket": self.request.destination_bucket_name,
            "destination_key": self.request.destination_key,
            "outcome": self.outcome.value,
            "bytes_downloaded": self.bytes_downloaded,
            "bytes_uploaded": self.bytes_uploaded,
        }
        if self.location is not None:
            result["location"] = self.location
        if self.error is not None:
            result[ERROR_KEY] = {"type": type(self.error).__name__, "message": str(self.error)}
        return result


def get_destination_key(key: str) -> str:
    return key.replace(GZIP_SUFFIX, "", 1)


def download_object(request: TransferRequest, s3_client: S3Client, writer: PipeWriter) -> int:
    """
    Stream the source object into `writer`, one chunk after the other.

    `writer` is closed on success and aborted on failure, so the reader never blocks forever.
    """
    try:
        response = s3_client.get_object(Bucket=request.source_bucket_name, Key=request.key)
        body = response[S3_BODY_KEY]
        try:
            for chunk in body.iter_chunks(chunk_size=CHUNK_SIZE):
                writer.write(chunk)
        finally:
            body.close()
    except PipeClosedError:
        # The upload gave up; its error is the one reported
        writer.close()
        return writer.bytes_written
    except (BotoCoreError, ClientError, OSError) as error:
        download_error = DownloadError(
            request.source_bucket_name, request.key, f"Unable to download item: {error}"
        )
        writer.abort(download_error)
        raise download_error from error
    except BaseException as error:
        writer.abort(error)
        raise

    writer.close()
    LOGGER.debug(
        LOG_MESSAGE_DOWNLOAD_COMPLETE,
        extra={"key": request.key, "bytes": writer.bytes_written},
    )
    return writer.bytes_written


def upload_decompressed(
    request: TransferRequest,
    s3_client: S3Client,
    reader: PipeReader,
    part_size: int = UPLOAD_PART_SIZE,
) -> Optional[UploadSummary]:
    """
    Gunzip everything read from `reader` into the destination object.

    Returns None if the download was aborted. A failed upload is aborted rather than completed,
    so it leaves no destination object behind.
    """
    destination_bucket_name = request.destination_bucket_name
    destination_key = request.destination_key
    destination_url = get_s3_url(destination_bucket_name, destination_key)
    content_type_kwargs = {"ContentType": PLAIN_TEXT_CONTENT_TYPE}
    bytes_uploaded = 0

    try:
        with open_gunzip_reader(reader) as body, smart_open.open(
            destination_url,
            mode="wb",
            compression=NO_COMPRESSION,
            transport_params={
                "client": s3_client,
                "client_kwargs": {
                    "S3.Client.create_multipart_upload": content_type_kwargs,
                    "S3.Client.put_object": content_type_kwargs,
                },
                "min_part_size": part_size,
            },
        ) as target_file:
            for chunk in iter(partial(body.read, CHUNK_SIZE), b""):
                target_file.write(chunk)
                bytes_uploaded += len(chunk)
    except PipeAbortedError:
        return None
    except (BadGzipFile, EOFError, zlib.error) as error:
        raise DecompressionError(
            request.source_bucket_name, request.key, f"Unable to decompress item: {error}"
        ) from error
    except ValueError as error:
        # smart_open reports a missing or forbidden bucket as a ValueError caused by the S3 error
        if not isinstance(error.__cause__, (BotoCoreError, ClientError)):
            raise
        raise get_upload_error(request, destination_url, error) from error
    except (BotoCoreError, ClientError, OSError) as error:
        raise get_upload_error(request, destination_url, error) from error
    finally:
        reader.close()

    return UploadSummary(destination_url, bytes_uploaded)


def get_upload_error(
    request: TransferRequest, destination_url: str, error: Exception
) -> UploadError:
    return UploadError(
        request.source_bucket_name, request.key, f"Failed to upload to {destination_url}: {error}"
    )


def gunzip_object(
    request: TransferRequest,
    source_s3_client: S3Client,
    target_s3_client: S3Client,
    pipe_capacity: int = PIPE_CAPACITY,
    part_size: int = UPLOAD_PART_SIZE,
) -> TransferResult:
    """
    Copy the gunzipped contents of one source object to its destination key.

    The download and the decompress-and-upload run on two threads joined by a bounded pipe, so
    memory use does not depend on the object size. Failures are reported in the result; only
    unexpected exceptions propagate.
    """
    if GZIP_SUFFIX not in request.key:
        result = TransferResult(
            request,
            error=InvalidKeyError(
                request.source_bucket_name,
                request.key,
                f"Key has no “{GZIP_SUFFIX}” suffix to remove",
            ),
        )
        log_result(result)
        return result

    reader, writer = open_pipe(pipe_capacity)
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="gunzip") as executor:
        download = executor.submit(download_object, request, source_s3_client, writer)
        upload = executor.submit(upload_decompressed, request, target_s3_client, reader, part_size)

    errors = [future.exception() for future in (download, upload)]
    for error in errors:
        if error is not None and not isinstance(error, TransferError):
            raise error

    # A failed download is reported over whatever it caused on the upload side
    transfer_errors = [error for error in errors if isinstance(error, TransferError)]
    if transfer_errors:
        result = TransferResult(
            request, bytes_downloaded=writer.bytes_written, error=transfer_errors[0]
        )
    else:
        # Only None when the download failed
        upload_summary = cast(UploadSummary, upload.result())
        result = TransferResult(
            request,
            bytes_downloaded=writer.bytes_written,
            bytes_uploaded=upload_summary.bytes_uploaded,
            location=upload_summary.location,
        )

    log_result(result)
    return result


def log_result(result: TransferResult) -> None:
    if result.error is None:
        LOGGER.info(LOG_MESSAGE_TRANSFER_COMPLETE, extra=result.to_json())
    else:
        LOGGER.error(LOG_MESSAGE_TRANSFER_FAILED, extra=result.to_json())
