import json
import os
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any, Mapping, Optional

from bson.binary import UUID_SUBTYPE, Binary

from fieldvault.crypto.schema import (
    DEFAULT_USER_FIELDS,
    FieldRule,
    build_schema_map,
    parse_field_rules,
)
from fieldvault.utils import strict_b64decode

_STRING_CFG_PREFIX = "FV_CFG_"
_JSON_CFG_PREFIX = "FV_CFG_JSON_"

LOCAL_MASTER_KEY_SIZE = 96
DATA_KEY_ID_SIZE = 16

# owned by _load_mongo and _load_server
_PARSED_KEYS = frozenset(
    [
        "MONGO_URI",
        "MASTER_KEY",
        "KEY_ID",
        "KEY_VAULT_NAMESPACE",
        "DATABASE_NAME",
        "USERS_COLLECTION",
        "SERVER_SELECTION_TIMEOUT_MS",
        "HOST",
        "PORT",
    ]
)


class ConfigParseError(Exception):
    pass


class MissingConfigError(ConfigParseError):
    pass


@dataclass(frozen=True)
class EncryptionSettings:
    mongo_uri: str
    master_key: bytes
    key_id: Optional[str]
    key_vault_namespace: str
    database_name: str
    users_collection: str
    server_selection_timeout_ms: int
    encrypted_fields: tuple[FieldRule, ...] = DEFAULT_USER_FIELDS

    def __repr__(self) -> str:
        # keep the master key out of logs and tracebacks
        return (
            f"{type(self).__name__}(key_vault_namespace={self.key_vault_namespace!r}, "
            f"database_name={self.database_name!r}, users_collection={self.users_collection!r})"
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EncryptionSettings":
        raw_fields = config.get("ENCRYPTED_FIELDS")
        if raw_fields is None:
            fields = DEFAULT_USER_FIELDS
        else:
            try:
                fields = parse_field_rules(raw_fields)
            except ValueError as e:
                raise ConfigParseError(f"Invalid ENCRYPTED_FIELDS: {e}")

        return cls(
            mongo_uri=config["MONGO_URI"],
            master_key=config["MASTER_KEY"],
            key_id=config.get("KEY_ID"),
            key_vault_namespace=config["KEY_VAULT_NAMESPACE"],
            database_name=config["DATABASE_NAME"],
            users_collection=config["USERS_COLLECTION"],
            server_selection_timeout_ms=config["SERVER_SELECTION_TIMEOUT_MS"],
            encrypted_fields=fields,
        )

    @property
    def kms_providers(self) -> dict[str, Any]:
        return {"local": {"key": self.master_key}}

    @property
    def users_namespace(self) -> str:
        return f"{self.database_name}.{self.users_collection}"

    @property
    def key_vault_db_and_collection(self) -> tuple[str, str]:
        db_name, coll_name = self.key_vault_namespace.split(".", 1)
        return db_name, coll_name

    @property
    def data_key(self) -> Binary:
        if not self.key_id:
            raise MissingConfigError("KEY_ID is not set in the environment variables")
        return Binary(strict_b64decode(self.key_id), UUID_SUBTYPE)

    @property
    def schema_map(self) -> dict[str, Any]:
        return build_schema_map(self.users_namespace, self.data_key, self.encrypted_fields)


def load_config(env: Optional[Mapping[str, str]] = None) -> Mapping[str, Any]:
    if env is None:
        env = os.environ

    # overrides of parsed keys go through the same checks as the plain env vars
    env = _with_parsed_overrides(env)

    config: dict[str, Any] = {}
    for func in [
        _load_flask,
        _load_mongo,
        _load_server,
        # load strings and JSON last as overrides
        _load_strings,
        _load_json,
    ]:
        config |= func(env)

    return config


def _with_parsed_overrides(env: Mapping[str, str]) -> Mapping[str, str]:
    merged = dict(env)

    for k, v in env.items():
        if k.startswith(_JSON_CFG_PREFIX):
            if (key := k[len(_JSON_CFG_PREFIX) :]) in _PARSED_KEYS:
                raise ConfigParseError(
                    f"Env var {k!r} can't be set as JSON, use {_STRING_CFG_PREFIX}{key}"
                )
        elif k.startswith(_STRING_CFG_PREFIX):
            if (key := k[len(_STRING_CFG_PREFIX) :]) in _PARSED_KEYS:
                merged[key] = v

    return merged


def _load_flask(env: Mapping[str, str]) -> Mapping[str, Any]:
    data = {}

    for key in ["FLASK_ENV", "SECRET_KEY"]:
        if val := env.get(key):
            data[key] = val

    return data


def _require(env: Mapping[str, str], key: str) -> str:
    if not (val := env.get(key)):
        raise MissingConfigError(f"{key} is not set in the environment variables")
    return val


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    if not (val := env.get(key)):
        return default
    try:
        parsed = int(val)
    except ValueError:
        raise ConfigParseError(f"{key} must be an integer, got {val!r}")
    if parsed <= 0:
        raise ConfigParseError(f"{key} must be positive, got {parsed}")
    return parsed


def _load_mongo(env: Mapping[str, str]) -> Mapping[str, Any]:
    data: dict[str, Any] = {}

    data["MONGO_URI"] = _require(env, "MONGO_URI")

    # never echo the key itself in the error
    try:
        master_key = strict_b64decode(_require(env, "MASTER_KEY"))
    except ValueError:
        raise ConfigParseError("MASTER_KEY must be base64 encoded")
    if len(master_key) != LOCAL_MASTER_KEY_SIZE:
        raise ConfigParseError(
            f"MASTER_KEY must decode to {LOCAL_MASTER_KEY_SIZE} bytes, got {len(master_key)}"
        )
    data["MASTER_KEY"] = master_key

    if key_id := env.get("KEY_ID"):
        try:
            decoded = strict_b64decode(key_id)
        except ValueError:
            raise ConfigParseError("KEY_ID must be base64 encoded")
        if len(decoded) != DATA_KEY_ID_SIZE:
            raise ConfigParseError(
                f"KEY_ID must decode to {DATA_KEY_ID_SIZE} bytes, got {len(decoded)}"
            )
        data["KEY_ID"] = key_id

    namespace = env.get("KEY_VAULT_NAMESPACE", "encryption.__keyVault")
    db_name, _, coll_name = namespace.partition(".")
    if not db_name or not coll_name:
        raise ConfigParseError(
            f"KEY_VAULT_NAMESPACE must look like '<database>.<collection>', got {namespace!r}"
        )
    data["KEY_VAULT_NAMESPACE"] = namespace

    data["DATABASE_NAME"] = env.get("DATABASE_NAME", "queryable_encryption")
    data["USERS_COLLECTION"] = env.get("USERS_COLLECTION", "users")
    data["SERVER_SELECTION_TIMEOUT_MS"] = _parse_int(env, "SERVER_SELECTION_TIMEOUT_MS", 5000)

    return data


def _load_server(env: Mapping[str, str]) -> Mapping[str, Any]:
    return {
        "HOST": env.get("HOST", "0.0.0.0"),  # noqa: S104
        "PORT": _parse_int(env, "PORT", 8000),
    }


def _load_strings(env: Mapping[str, str]) -> Mapping[str, Any]:
    return {
        k[len(_STRING_CFG_PREFIX) :]: v
        for k, v in env.items()
        if k.startswith(_STRING_CFG_PREFIX)
        and not k.startswith(_JSON_CFG_PREFIX)
        and k[len(_STRING_CFG_PREFIX) :] not in _PARSED_KEYS
    }


def _load_json(env: Mapping[str, str]) -> Mapping[str, Any]:
    data = {}

    for k, v in env.items():
        if not k.startswith(_JSON_CFG_PREFIX):
            continue

        try:
            data[k[len(_JSON_CFG_PREFIX) :]] = json.loads(v)
        except JSONDecodeError:
            raise ConfigParseError(f"Env var {k!r} could not be parsed as JSON")

    return data
