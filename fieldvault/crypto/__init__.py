"""
A subpackage to organize fieldvault's encryption configuration. The encryption itself is
performed by the MongoDB driver; key provisioning lives in `fieldvault.crypto.key_vault`.
"""

from .schema import (
    DEFAULT_USER_FIELDS,
    DETERMINISTIC,
    RANDOM,
    FieldRule,
    build_schema_map,
    hidden_fields,
    parse_field_rules,
)

__all__ = [
    "DEFAULT_USER_FIELDS",
    "DETERMINISTIC",
    "RANDOM",
    "FieldRule",
    "build_schema_map",
    "hidden_fields",
    "parse_field_rules",
]
