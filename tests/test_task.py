from os import environ
from typing import List
from unittest.mock import MagicMock, patch

from jsonschema import ValidationError
from pytest import raises
from pytest_subtests import SubTests

from s3_gunzip.environment import (
    DESTINATION_BUCKET_VARIABLE_NAME,
    FAILURE_POLICY_VARIABLE_NAME,
    FailurePolicy,
)
from s3_gunzip.errors import BatchFailedError, DownloadError
from s3_gunzip.gunzip_object.task import GunzipDispatcher, get_transfer_requests, lambda_handler
from s3_gunzip.gunzip_object.transfer import TransferRequest, TransferResult
from s3_gunzip.logging_keys import RESULTS_KEY
from s3_gunzip.s3_event_keys import RECORDS_KEY

from .aws_utils import any_gzip_key, any_lambda_context, any_s3_bucket_name, any_s3_event
from .general_generators import any_error_message

GUNZIP_OBJECT_PATH = "s3_gunzip.gunzip_object.task.gunzip_object"
GET_S3_CLIENT_PATH = "s3_gunzip.gunzip_object.task.get_s3_client"


class RecordingTransfer:
    """Succeeds for every key except those in `failing_keys`, remembering each request."""

    def __init__(self, failing_keys: List[str]):
        self.failing_keys = failing_keys
        self.requests: List[TransferRequest] = []

    def __call__(self, request: TransferRequest) -> TransferResult:
        self.requests.append(request)
        if request.key in self.failing_keys:
            return TransferResult(
                request,
                error=DownloadError(request.source_bucket_name, request.key, any_error_message()),
            )
        return TransferResult(request, location=f"s3://{request.destination_bucket_name}/")


def should_extract_transfer_requests_in_record_order() -> None:
    # Given
    destination_bucket = any_s3_bucket_name()
    objects = [(any_s3_bucket_name(), any_gzip_key()) for _ in range(5)]

    # When
    requests = get_transfer_requests(any_s3_event(objects), destination_bucket)

    # Then
    assert requests == [
        TransferRequest(bucket_name, destination_bucket, key) for bucket_name, key in objects
    ]


def should_decode_url_encoded_keys() -> None:
    bucket_name = any_s3_bucket_name()

    requests = get_transfer_requests(
        any_s3_event([(bucket_name, "my logs/año=2020/file name+1.csv.gz")]),
        any_s3_bucket_name(),
    )

    assert requests[0].key == "my logs/año=2020/file name+1.csv.gz"


def should_reject_event_without_records() -> None:
    with raises(ValidationError):
        get_transfer_requests({}, any_s3_bucket_name())


def should_reject_record_without_object_key() -> None:
    event = any_s3_event([(any_s3_bucket_name(), any_gzip_key())])
    del event[RECORDS_KEY][0]["s3"]["object"]["key"]

    with raises(ValidationError):
        get_transfer_requests(event, any_s3_bucket_name())


def should_run_transfers_sequentially_in_record_order() -> None:
    # Given
    objects = [(any_s3_bucket_name(), any_gzip_key()) for _ in range(4)]
    transfer = RecordingTransfer(failing_keys=[])

    # When
    results = GunzipDispatcher(any_s3_bucket_name(), transfer).dispatch(any_s3_event(objects))

    # Then
    assert [request.key for request in transfer.requests] == [key for _, key in objects]
    assert [result.request for result in results] == transfer.requests


def should_stop_batch_after_first_failure_by_default(subtests: SubTests) -> None:
    # Given
    keys = [any_gzip_key() for _ in range(4)]
    transfer = RecordingTransfer(failing_keys=[keys[1]])
    event = any_s3_event([(any_s3_bucket_name(), key) for key in keys])

    # When
    results = GunzipDispatcher(any_s3_bucket_name(), transfer).dispatch(event)

    # Then
    with subtests.test(msg="Attempted keys"):
        assert [request.key for request in transfer.requests] == keys[:2]

    with subtests.test(msg="Results"):
        assert len(results) == 2
        assert isinstance(results[1].error, DownloadError)


def should_attempt_every_record_when_continuing_after_failure() -> None:
    # Given
    keys = [any_gzip_key() for _ in range(4)]
    transfer = RecordingTransfer(failing_keys=[keys[0], keys[2]])
    event = any_s3_event([(any_s3_bucket_name(), key) for key in keys])

    # When
    results = GunzipDispatcher(
        any_s3_bucket_name(), transfer, FailurePolicy.CONTINUE
    ).dispatch(event)

    # Then
    assert [result.request.key for result in results] == keys
    assert [result.error is not None for result in results] == [True, False, True, False]


def should_make_no_s3_calls_for_event_without_records() -> None:
    # Given
    s3_client = MagicMock()

    # When
    with patch.dict(environ, {DESTINATION_BUCKET_VARIABLE_NAME: any_s3_bucket_name()}), patch(
        GET_S3_CLIENT_PATH, return_value=s3_client
    ):
        response = lambda_handler({RECORDS_KEY: []}, any_lambda_context())

    # Then
    assert response == {RESULTS_KEY: []}
    assert s3_client.method_calls == []


def should_pass_destination_bucket_from_environment_to_transfers() -> None:
    # Given
    destination_bucket = any_s3_bucket_name()
    source_bucket = any_s3_bucket_name()
    key = any_gzip_key()
    s3_client = MagicMock()
    transfer = RecordingTransfer(failing_keys=[])

    # When
    with patch.dict(environ, {DESTINATION_BUCKET_VARIABLE_NAME: destination_bucket}), patch(
        GET_S3_CLIENT_PATH, return_value=s3_client
    ), patch(GUNZIP_OBJECT_PATH) as gunzip_object_mock:
        gunzip_object_mock.side_effect = lambda request, **_kwargs: transfer(request)
        response = lambda_handler(any_s3_event([(source_bucket, key)]), any_lambda_context())

    # Then
    assert transfer.requests == [TransferRequest(source_bucket, destination_bucket, key)]
    gunzip_object_mock.assert_called_once_with(
        transfer.requests[0], source_s3_client=s3_client, target_s3_client=s3_client
    )
    assert len(response[RESULTS_KEY]) == 1


def should_fail_invocation_naming_failed_keys(subtests: SubTests) -> None:
    # Given
    keys = [any_gzip_key() for _ in range(3)]
    transfer = RecordingTransfer(failing_keys=[keys[0], keys[2]])
    event = any_s3_event([(any_s3_bucket_name(), key) for key in keys])

    # When
    with patch.dict(
        environ,
        {
            DESTINATION_BUCKET_VARIABLE_NAME: any_s3_bucket_name(),
            FAILURE_POLICY_VARIABLE_NAME: FailurePolicy.CONTINUE.value,
        },
    ), patch(GET_S3_CLIENT_PATH), patch(GUNZIP_OBJECT_PATH) as gunzip_object_mock:
        gunzip_object_mock.side_effect = lambda request, **_kwargs: transfer(request)

        with raises(BatchFailedError) as exception_info:
            lambda_handler(event, any_lambda_context())

    # Then
    with subtests.test(msg="Failed keys"):
        assert exception_info.value.failed_keys == [keys[0], keys[2]]

    with subtests.test(msg="All records attempted"):
        assert len(transfer.requests) == 3
