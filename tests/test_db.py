from unittest.mock import MagicMock

import pytest
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError
from pytest_mock import MockFixture

from fieldvault.config import EncryptionSettings
from fieldvault.db import (
    DatabaseConnectionError,
    build_auto_encryption_opts,
    encrypted_client,
    plain_client,
)


def test_auto_encryption_opts(mocker: MockFixture, settings: EncryptionSettings) -> None:
    opts_cls = mocker.patch("fieldvault.db.AutoEncryptionOpts")

    opts = build_auto_encryption_opts(settings)

    assert opts is opts_cls.return_value
    opts_cls.assert_called_once_with(
        settings.kms_providers,
        "encryption.__keyVault",
        schema_map=settings.schema_map,
    )


def test_encrypted_client_connects_and_closes(
    mocker: MockFixture, settings: EncryptionSettings
) -> None:
    opts_cls = mocker.patch("fieldvault.db.AutoEncryptionOpts")
    client_cls = mocker.patch("fieldvault.db.MongoClient")
    instance = client_cls.return_value

    with encrypted_client(settings) as client:
        assert client is instance
        instance.admin.command.assert_called_once_with("ping")
        instance.close.assert_not_called()

    instance.close.assert_called_once_with()
    client_cls.assert_called_once_with(
        settings.mongo_uri,
        serverSelectionTimeoutMS=5000,
        auto_encryption_opts=opts_cls.return_value,
    )


def test_encrypted_client_closes_when_body_raises(
    mongo_client: MagicMock, settings: EncryptionSettings
) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        with encrypted_client(settings):
            raise RuntimeError("boom")

    mongo_client.close.assert_called_once_with()


@pytest.mark.parametrize(
    "error",
    [
        ServerSelectionTimeoutError("no servers"),
        ConnectionFailure("refused"),
        OperationFailure("auth failed"),
    ],
)
def test_connection_failures_are_wrapped(
    mongo_client: MagicMock, settings: EncryptionSettings, error: Exception
) -> None:
    mongo_client.admin.command.side_effect = error

    with pytest.raises(DatabaseConnectionError) as e_info:
        with encrypted_client(settings):
            pytest.fail("body must not run")

    assert str(e_info.value) == str(error)
    assert e_info.value.__cause__ is error
    mongo_client.close.assert_called_once_with()


def test_plain_client_has_no_auto_encryption(
    mocker: MockFixture, settings: EncryptionSettings
) -> None:
    opts_cls = mocker.patch("fieldvault.db.AutoEncryptionOpts")
    client_cls = mocker.patch("fieldvault.db.MongoClient")

    with plain_client(settings):
        pass

    opts_cls.assert_not_called()
    assert client_cls.call_args.kwargs["auto_encryption_opts"] is None
    client_cls.return_value.close.assert_called_once_with()
