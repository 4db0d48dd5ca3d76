"""
One-shot provisioning of data encryption keys in the key vault collection.
"""

import logging
from base64 import b64encode
from typing import Optional, Sequence

from bson.codec_options import CodecOptions
from pymongo.encryption import ClientEncryption

from fieldvault.config import EncryptionSettings
from fieldvault.db import plain_client

logger = logging.getLogger(__name__)

LOCAL_KMS_PROVIDER = "local"


def ensure_key_vault_index(settings: EncryptionSettings) -> None:
    """Two data keys must never share a keyAltName"""
    db_name, coll_name = settings.key_vault_db_and_collection
    with plain_client(settings) as client:
        client[db_name][coll_name].create_index(
            "keyAltNames",
            unique=True,
            partialFilterExpression={"keyAltNames": {"$exists": True}},
        )


def create_data_key(
    settings: EncryptionSettings, key_alt_names: Optional[Sequence[str]] = None
) -> str:
    if key_alt_names:
        ensure_key_vault_index(settings)

    with plain_client(settings) as client:
        client_encryption = ClientEncryption(
            settings.kms_providers,
            settings.key_vault_namespace,
            client,
            CodecOptions(),
        )
        try:
            key_id = client_encryption.create_data_key(
                LOCAL_KMS_PROVIDER,
                key_alt_names=list(key_alt_names) if key_alt_names else None,
            )
        finally:
            client_encryption.close()

    logger.info(f"Created data encryption key in {settings.key_vault_namespace}")
    return b64encode(bytes(key_id)).decode()
