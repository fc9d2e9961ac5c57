import sys
from enum import IntEnum
from functools import partial
from json import JSONDecodeError, dumps, load
from pathlib import Path
from typing import List, Optional

from botocore.exceptions import NoCredentialsError, NoRegionError
from jsonschema import ValidationError
from typer import Argument, Option, Typer, secho
from typer.colors import GREEN, RED, YELLOW

from .environment import (
    DEFAULT_FAILURE_POLICY,
    DESTINATION_BUCKET_VARIABLE_NAME,
    FAILURE_POLICY_VARIABLE_NAME,
    FailurePolicy,
)
from .errors import (
    DecompressionError,
    DownloadError,
    InvalidKeyError,
    TransferError,
    UploadError,
)
from .gunzip_object.task import GunzipDispatcher, Transfer
from .gunzip_object.transfer import TransferRequest, TransferResult, gunzip_object
from .logging_keys import RESULTS_KEY
from .s3 import get_s3_client
from .types import JsonObject

DESTINATION_BUCKET_HELP = (
    "Bucket to write the gunzipped objects to."
    f" Defaults to the value of ${DESTINATION_BUCKET_VARIABLE_NAME}."
)

app = Typer(context_settings=dict(max_content_width=sys.maxsize))


class ExitCode(IntEnum):
    SUCCESS = 0
    UNKNOWN = 1
    # Exit code 2 is used by Typer to indicate usage error
    DOWNLOAD_FAILED = 3
    DECOMPRESSION_FAILED = 4
    UPLOAD_FAILED = 5
    INVALID_KEY = 6
    NO_CREDENTIALS = 7
    NO_REGION_SETTING = 8
    INVALID_EVENT = 9


ERROR_EXIT_CODES = {
    DownloadError: ExitCode.DOWNLOAD_FAILED,
    DecompressionError: ExitCode.DECOMPRESSION_FAILED,
    UploadError: ExitCode.UPLOAD_FAILED,
    InvalidKeyError: ExitCode.INVALID_KEY,
}


@app.callback()
def main() -> None:
    """Gunzip S3 objects into another bucket without holding them in memory."""


@app.command(name="object", help="Gunzip a single object.")
def gunzip_single_object(
    source_bucket: str = Option(..., help="Bucket containing the gzipped object."),
    key: str = Option(..., help="Key of the gzipped object, for example 'logs/today.csv.gz'."),
    destination_bucket: str = Option(
        ..., envvar=DESTINATION_BUCKET_VARIABLE_NAME, help=DESTINATION_BUCKET_HELP
    ),
) -> None:
    result = get_transfer()(TransferRequest(source_bucket, destination_bucket, key))

    if result.error is None:
        secho(result.location, fg=GREEN)
        sys.exit(ExitCode.SUCCESS)

    exit_with_error(result.error)


@app.command(name="event", help="Gunzip every object of an S3 event notification file.")
def gunzip_event(
    event_file: Path = Argument(..., exists=True, dir_okay=False, help="S3 event JSON file."),
    destination_bucket: str = Option(
        ..., envvar=DESTINATION_BUCKET_VARIABLE_NAME, help=DESTINATION_BUCKET_HELP
    ),
    failure_policy: FailurePolicy = Option(
        DEFAULT_FAILURE_POLICY,
        envvar=FAILURE_POLICY_VARIABLE_NAME,
        case_sensitive=False,
        help="Whether a failed object stops the remaining objects of the event.",
    ),
) -> None:
    transfer = get_transfer()

    try:
        with event_file.open(encoding="utf-8") as event_stream:
            event: JsonObject = load(event_stream)
        results = GunzipDispatcher(destination_bucket, transfer, failure_policy).dispatch(event)
    except JSONDecodeError as error:
        secho(f"Event file is not JSON: {error}", err=True, fg=RED)
        sys.exit(ExitCode.INVALID_EVENT)
    except ValidationError as error:
        secho(f"Event file is not an S3 event: {error.message}", err=True, fg=RED)
        sys.exit(ExitCode.INVALID_EVENT)

    secho(dumps({RESULTS_KEY: [result.to_json() for result in results]}), fg=GREEN)

    first_error = get_first_error(results)
    if first_error is None:
        sys.exit(ExitCode.SUCCESS)

    exit_with_error(first_error)


def get_transfer() -> Transfer:
    try:
        s3_client = get_s3_client()
    except NoRegionError:
        secho(
            "Unable to locate region settings. Make sure to log in to AWS first.",
            err=True,
            fg=YELLOW,
        )
        sys.exit(ExitCode.NO_REGION_SETTING)

    return partial(gunzip_object, source_s3_client=s3_client, target_s3_client=s3_client)


def get_first_error(results: List[TransferResult]) -> Optional[TransferError]:
    for result in results:
        if result.error is not None:
            return result.error
    return None


def get_exit_code(error: TransferError) -> ExitCode:
    if isinstance(error.__cause__, NoCredentialsError):
        return ExitCode.NO_CREDENTIALS

    return ERROR_EXIT_CODES.get(type(error), ExitCode.UNKNOWN)


def exit_with_error(error: TransferError) -> None:
    exit_code = get_exit_code(error)
    if exit_code == ExitCode.NO_CREDENTIALS:
        secho(
            "Unable to locate credentials. Make sure to log in to AWS first.", err=True, fg=YELLOW
        )
    else:
        secho(str(error), err=True, fg=RED)
    sys.exit(exit_code)


if __name__ == "__main__":
    app()
