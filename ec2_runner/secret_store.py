# ec2_runner/secret_store.py
import logging

from botocore.exceptions import BotoCoreError, ClientError

from ec2_runner.errors import SecretFetchError

log = logging.getLogger("ec2_runner.secret_store")


def get_secret_value(secretsmanager, secret_id: str) -> str:
    """
    Fetch a secret string from AWS Secrets Manager by ARN or friendly name.
    One round trip; no caching, no retry.
    """
    try:
        resp = secretsmanager.get_secret_value(SecretId=secret_id)
    except ClientError as e:
        log.error("Error retrieving AWS Secrets Manager value: %s", secret_id)
        code = e.response.get("Error", {}).get("Code", "Unknown")
        raise SecretFetchError(f"Secret {secret_id} could not be read ({code}): {e}") from e
    except BotoCoreError as e:
        log.error("Error retrieving AWS Secrets Manager value: %s", secret_id)
        raise SecretFetchError(f"Secret {secret_id} could not be read: {e}") from e

    value = resp.get("SecretString")
    if value is None:
        raise SecretFetchError(f"Secret {secret_id} has no string value")
    return value
