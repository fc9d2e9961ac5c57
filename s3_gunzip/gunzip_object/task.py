"""
Gunzip Lambda function, triggered by S3 "object created" notifications.
"""
from functools import partial
from json import dumps
from typing import Callable, List
from urllib.parse import unquote_plus

from jsonschema import validate
from linz_logger import get_log

from ..environment import (
    DEFAULT_FAILURE_POLICY,
    FailurePolicy,
    destination_bucket_name,
    failure_policy,
)
from ..errors import BatchFailedError
from ..logging_keys import EVENT_KEY, LOG_MESSAGE_BATCH_ABORTED, RESULTS_KEY
from ..s3 import get_s3_client
from ..s3_event_keys import BUCKET_KEY, KEY_KEY, NAME_KEY, OBJECT_KEY, RECORDS_KEY, S3_KEY
from ..types import JsonObject
from .transfer import Outcome, TransferRequest, TransferResult, gunzip_object

LOGGER = get_log()

S3_EVENT_SCHEMA = {
    "type": "object",
    "properties": {
        RECORDS_KEY: {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    S3_KEY: {
                        "type": "object",
                        "properties": {
                            BUCKET_KEY: {
                                "type": "object",
                                "properties": {NAME_KEY: {"type": "string", "minLength": 1}},
                                "required": [NAME_KEY],
                            },
                            OBJECT_KEY: {
                                "type": "object",
                                "properties": {KEY_KEY: {"type": "string", "minLength": 1}},
                                "required": [KEY_KEY],
                            },
                        },
                        "required": [BUCKET_KEY, OBJECT_KEY],
                    }
                },
                "required": [S3_KEY],
            },
        }
    },
    "required": [RECORDS_KEY],
}

Transfer = Callable[[TransferRequest], TransferResult]


def get_transfer_requests(event: JsonObject, destination_bucket: str) -> List[TransferRequest]:
    validate(event, S3_EVENT_SCHEMA)

    return [
        TransferRequest(
            source_bucket_name=record[S3_KEY][BUCKET_KEY][NAME_KEY],
            destination_bucket_name=destination_bucket,
            # Object keys in S3 notifications are URL encoded
            key=unquote_plus(record[S3_KEY][OBJECT_KEY][KEY_KEY]),
        )
        for record in event[RECORDS_KEY]
    ]


class GunzipDispatcher:
    """Run one transfer per event record, in order, applying the batch failure policy."""

    def __init__(
        self,
        destination_bucket: str,
        transfer: Transfer,
        policy: FailurePolicy = DEFAULT_FAILURE_POLICY,
    ):
        self.destination_bucket = destination_bucket
        self.transfer = transfer
        self.policy = policy

    def dispatch(self, event: JsonObject) -> List[TransferResult]:
        requests = get_transfer_requests(event, self.destination_bucket)
        results = []

        for index, request in enumerate(requests):
            result = self.transfer(request)
            results.append(result)

            if result.outcome is Outcome.FAILED and self.policy is FailurePolicy.ABORT:
                LOGGER.error(
                    LOG_MESSAGE_BATCH_ABORTED,
                    extra={
                        "key": request.key,
                        "skipped_keys": [skipped.key for skipped in requests[index + 1 :]],
                    },
                )
                break

        return results


def get_failed_keys(results: List[TransferResult]) -> List[str]:
    return [result.request.key for result in results if result.outcome is Outcome.FAILED]


def lambda_handler(event: JsonObject, _context: bytes) -> JsonObject:
    LOGGER.debug(dumps({EVENT_KEY: event}))

    s3_client = get_s3_client()
    dispatcher = GunzipDispatcher(
        destination_bucket_name(),
        partial(gunzip_object, source_s3_client=s3_client, target_s3_client=s3_client),
        failure_policy(),
    )
    results = dispatcher.dispatch(event)

    failed_keys = get_failed_keys(results)
    if failed_keys:
        raise BatchFailedError(failed_keys)

    return {RESULTS_KEY: [result.to_json() for result in results]}
