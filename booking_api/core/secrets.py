"""Resolution of configuration values stored in AWS Secrets Manager."""

import json
import logging
from urllib.parse import quote_plus

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

SECRET_ARN_PREFIX = "arn:aws:secretsmanager:"
DEFAULT_DB_NAME = "bookingdb"
DEFAULT_DB_PORT = 5432


class SecretResolutionError(RuntimeError):
    """Raised when a secret reference cannot be turned into its value."""


def is_secret_reference(value: str) -> bool:
    return value.startswith(SECRET_ARN_PREFIX) or "/" in value


def _get_client(client=None):
    return client if client is not None else boto3.client("secretsmanager")


def fetch_secret_string(secret_id: str, client=None) -> str:
    try:
        response = _get_client(client).get_secret_value(SecretId=secret_id)
    except (BotoCoreError, ClientError) as exc:
        raise SecretResolutionError(f"Unable to read secret {secret_id!r}.") from exc

    secret_string = response.get("SecretString")
    if secret_string is None:
        raise SecretResolutionError(f"Secret {secret_id!r} has no string value.")
    return secret_string


def resolve_secret(value: str | None, client=None) -> str | None:
    """Return ``value`` unchanged unless it names a secret, in which case fetch it."""
    if value is None or not value.strip():
        return None

    value = value.strip()
    if not is_secret_reference(value):
        return value

    logger.info("Resolving secret reference %s", value)
    return fetch_secret_string(value, client=client)


def load_database_url(secret_id: str, client=None) -> str:
    """Build a PostgreSQL URL from a JSON secret holding the connection details."""
    raw = fetch_secret_string(secret_id, client=client)
    try:
        payload = json.loads(raw)
        host = payload["host"]
        username = payload["username"]
        password = payload["password"]
    except (ValueError, KeyError, TypeError) as exc:
        raise SecretResolutionError(f"Secret {secret_id!r} is not a valid database secret.") from exc

    dbname = payload.get("dbname") or DEFAULT_DB_NAME
    port = payload.get("port") or DEFAULT_DB_PORT

    return (
        f"postgresql+psycopg2://{quote_plus(username)}:{quote_plus(password)}"
        f"@{host}:{port}/{dbname}?sslmode=require"
    )
