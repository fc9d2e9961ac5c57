from enum import Enum
from os import environ

DESTINATION_BUCKET_VARIABLE_NAME = "DESTINATION_BUCKET"
FAILURE_POLICY_VARIABLE_NAME = "FAILURE_POLICY"


class FailurePolicy(Enum):
    ABORT = "abort"
    CONTINUE = "continue"


DEFAULT_FAILURE_POLICY = FailurePolicy.ABORT


class ConfigurationError(Exception):
    pass


def destination_bucket_name() -> str:
    try:
        bucket_name = environ[DESTINATION_BUCKET_VARIABLE_NAME]
    except KeyError:
        raise ConfigurationError(
            f"Environment variable ${DESTINATION_BUCKET_VARIABLE_NAME} is not set"
        ) from None

    if not bucket_name:
        raise ConfigurationError(
            f"Environment variable ${DESTINATION_BUCKET_VARIABLE_NAME} is empty"
        )

    return bucket_name


def failure_policy() -> FailurePolicy:
    value = environ.get(FAILURE_POLICY_VARIABLE_NAME, DEFAULT_FAILURE_POLICY.value)
    try:
        return FailurePolicy(value.lower())
    except ValueError:
        allowed = ", ".join(f"“{policy.value}”" for policy in FailurePolicy)
        raise ConfigurationError(
            f"Invalid ${FAILURE_POLICY_VARIABLE_NAME} value “{value}”,"
            f" expected one of {allowed}"
        ) from None
