from base64 import b64encode
from secrets import token_bytes
from typing import TYPE_CHECKING, Any, Generator, Mapping
from unittest.mock import MagicMock

import pytest
from flask import Flask
from flask.testing import FlaskClient
from pytest_mock import MockFixture

from fieldvault import create_app
from fieldvault.config import EncryptionSettings, load_config

if TYPE_CHECKING:
    from _pytest.config.argparsing import Parser
else:
    Parser = Any


def pytest_addoption(parser: Parser) -> None:
    parser.addoption(
        "--mongo-uri",
        action="store",
        default=None,
        help="Run the integration tests against this MongoDB (needs libmongocrypt)",
    )


@pytest.fixture()
def master_key() -> str:
    return b64encode(token_bytes(96)).decode()


@pytest.fixture()
def key_id() -> str:
    return b64encode(token_bytes(16)).decode()


@pytest.fixture()
def env(master_key: str, key_id: str) -> dict[str, str]:
    return {
        "MONGO_URI": "mongodb://localhost:27017",
        "MASTER_KEY": master_key,
        "KEY_ID": key_id,
    }


@pytest.fixture()
def config(env: dict[str, str]) -> Mapping[str, Any]:
    return load_config(env)


@pytest.fixture()
def settings(config: Mapping[str, Any]) -> EncryptionSettings:
    return EncryptionSettings.from_config(config)


@pytest.fixture()
def app(config: Mapping[str, Any]) -> Generator[Flask, None, None]:
    app = create_app(config)
    app.config["TESTING"] = True

    with app.app_context():
        yield app


@pytest.fixture()
def client(app: Flask) -> Generator[FlaskClient, None, None]:
    with app.test_client() as client:
        yield client


@pytest.fixture()
def mongo_client(mocker: MockFixture) -> MagicMock:
    """The client instance handed out by `fieldvault.db`"""
    mocker.patch("fieldvault.db.AutoEncryptionOpts")
    return mocker.patch("fieldvault.db.MongoClient").return_value


@pytest.fixture()
def users_collection(mongo_client: MagicMock) -> MagicMock:
    return mongo_client.__getitem__.return_value.__getitem__.return_value


@pytest.fixture()
def live_env(request: pytest.FixtureRequest, master_key: str) -> dict[str, str]:
    mongo_uri = request.config.getoption("--mongo-uri")
    if not mongo_uri:
        pytest.skip("needs --mongo-uri")

    return {
        "MONGO_URI": mongo_uri,
        "MASTER_KEY": master_key,
        "DATABASE_NAME": "fieldvault_test_" + token_bytes(4).hex(),
        "KEY_VAULT_NAMESPACE": "fieldvault_test_encryption.__keyVault",
    }
