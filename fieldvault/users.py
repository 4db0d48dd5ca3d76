from typing import Any, Iterable, Mapping, Optional

from bson.objectid import ObjectId

from fieldvault.config import EncryptionSettings
from fieldvault.crypto.schema import hidden_fields
from fieldvault.db import encrypted_client

REGISTRATION_FIELDS = ("name", "email", "password", "ssn")


def registration_document(data: Any) -> dict[str, Any]:
    # absent keys are left out, the driver can't encrypt a null
    if not isinstance(data, Mapping):
        return {}
    return {key: data[key] for key in REGISTRATION_FIELDS if key in data}


def strip_hidden_fields(doc: Mapping[str, Any], paths: Iterable[str]) -> dict[str, Any]:
    safe = dict(doc)
    for path in paths:
        head, _, rest = path.partition(".")
        if not rest:
            safe.pop(head, None)
        elif isinstance(child := safe.get(head), Mapping):
            safe[head] = strip_hidden_fields(child, [rest])
    return safe


def register_user(settings: EncryptionSettings, data: Any) -> ObjectId:
    with encrypted_client(settings) as client:
        users = client[settings.database_name][settings.users_collection]
        result = users.insert_one(registration_document(data))
    return result.inserted_id


def find_user_by_email(settings: EncryptionSettings, email: str) -> Optional[dict[str, Any]]:
    with encrypted_client(settings) as client:
        users = client[settings.database_name][settings.users_collection]
        user = users.find_one({"email": email})

    if user is None:
        return None
    return strip_hidden_fields(user, hidden_fields(settings.encrypted_fields))
