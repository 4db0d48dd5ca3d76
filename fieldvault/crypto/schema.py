"""
Declarative rules binding document fields to the driver's encryption algorithms, and the
JSON schema map the driver consumes to encrypt on write and decrypt on read.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from bson.binary import Binary
from pymongo.encryption import Algorithm

DETERMINISTIC = Algorithm.AEAD_AES_256_CBC_HMAC_SHA_512_Deterministic.value
RANDOM = Algorithm.AEAD_AES_256_CBC_HMAC_SHA_512_Random.value

ALGORITHMS = frozenset([DETERMINISTIC, RANDOM])


@dataclass(frozen=True)
class FieldRule:
    path: str
    bson_type: str
    algorithm: str

    @property
    def queryable(self) -> bool:
        """Only deterministic ciphertext can be matched with an equality filter"""
        return self.algorithm == DETERMINISTIC

    def to_json(self) -> dict[str, str]:
        return {"path": self.path, "bsonType": self.bson_type, "algorithm": self.algorithm}


# email is looked up by exact match, the rest are never queried
DEFAULT_USER_FIELDS: tuple[FieldRule, ...] = (
    FieldRule("email", "string", DETERMINISTIC),
    FieldRule("password", "string", RANDOM),
    FieldRule("ssn", "string", RANDOM),
)


def parse_field_rules(raw: Any) -> tuple[FieldRule, ...]:
    if not isinstance(raw, list) or not raw:
        raise ValueError("Encrypted fields must be a non-empty list")

    rules = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValueError(f"Encrypted field entry must be an object, got {item!r}")

        path = item.get("path")
        if not isinstance(path, str) or not path:
            raise ValueError(f"Encrypted field entry has no path: {item!r}")

        algorithm = item.get("algorithm")
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Unknown encryption algorithm for {path!r}: {algorithm!r}")

        bson_type = item.get("bsonType", "string")
        if not isinstance(bson_type, str):
            raise ValueError(f"bsonType for {path!r} must be a string")

        rules.append(FieldRule(path, bson_type, algorithm))

    validate_field_rules(rules)
    return tuple(rules)


def validate_field_rules(rules: Sequence[FieldRule]) -> None:
    seen: set[str] = set()
    for rule in rules:
        if rule.path in seen:
            raise ValueError(f"Duplicate encrypted field: {rule.path!r}")
        seen.add(rule.path)

    # an encrypted field can't also be a parent of other encrypted fields
    for path in seen:
        if any(other.startswith(path + ".") for other in seen):
            raise ValueError(f"Encrypted field {path!r} overlaps a nested encrypted field")


def _nest(properties: dict[str, Any], path: str, field_schema: Mapping[str, Any]) -> None:
    head, _, rest = path.partition(".")
    if not rest:
        properties[head] = field_schema
        return

    child = properties.setdefault(head, {"bsonType": "object", "properties": {}})
    _nest(child["properties"], rest, field_schema)


def build_schema_map(
    namespace: str, key_id: Binary, rules: Iterable[FieldRule]
) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for rule in rules:
        _nest(
            properties,
            rule.path,
            {"encrypt": {"bsonType": rule.bson_type, "algorithm": rule.algorithm}},
        )

    return {
        namespace: {
            "bsonType": "object",
            "encryptMetadata": {"keyId": [key_id]},
            "properties": properties,
        }
    }


def hidden_fields(rules: Iterable[FieldRule]) -> tuple[str, ...]:
    return tuple(rule.path for rule in rules if not rule.queryable)
