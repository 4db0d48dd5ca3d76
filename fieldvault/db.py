"""
Per-request MongoDB clients. Every caller gets a fresh client and the client is closed on
every exit path; nothing is pooled or shared between requests.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from pymongo import MongoClient
from pymongo.encryption_options import AutoEncryptionOpts
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

from fieldvault.config import EncryptionSettings

logger = logging.getLogger(__name__)


class DatabaseConnectionError(Exception):
    pass


def build_auto_encryption_opts(settings: EncryptionSettings) -> AutoEncryptionOpts:
    return AutoEncryptionOpts(
        settings.kms_providers,
        settings.key_vault_namespace,
        schema_map=settings.schema_map,
    )


def _connect(
    settings: EncryptionSettings, auto_encryption_opts: Optional[AutoEncryptionOpts] = None
) -> MongoClient[dict[str, Any]]:
    client: MongoClient[dict[str, Any]] = MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        auto_encryption_opts=auto_encryption_opts,
    )
    try:
        # MongoClient connects lazily, force server selection now
        client.admin.command("ping")
    except (ServerSelectionTimeoutError, ConnectionFailure, OperationFailure) as e:
        client.close()
        raise DatabaseConnectionError(str(e)) from e
    except Exception:
        client.close()
        raise
    return client


@contextmanager
def encrypted_client(
    settings: EncryptionSettings,
) -> Generator[MongoClient[dict[str, Any]], None, None]:
    client = _connect(settings, build_auto_encryption_opts(settings))
    try:
        yield client
    finally:
        client.close()
        logger.debug("Closed encrypted client")


@contextmanager
def plain_client(
    settings: EncryptionSettings,
) -> Generator[MongoClient[dict[str, Any]], None, None]:
    client = _connect(settings)
    try:
        yield client
    finally:
        client.close()
