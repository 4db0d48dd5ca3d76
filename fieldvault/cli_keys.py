import click
from flask import Flask
from flask.cli import AppGroup

from fieldvault.config import EncryptionSettings
from fieldvault.crypto.key_vault import create_data_key


def register_key_commands(app: Flask, settings: EncryptionSettings) -> None:
    keys_cli = AppGroup("keys", help="Data encryption key commands")

    @keys_cli.command("create")
    @click.option(
        "--alt-name",
        "alt_names",
        multiple=True,
        help="Alternate name for the key, may be repeated",
    )
    def create(alt_names: tuple[str, ...]) -> None:
        """Create a data encryption key in the key vault"""
        key_id = create_data_key(settings, key_alt_names=alt_names)
        click.echo(f"Add this KEY_ID to your environment: {key_id}")

    app.cli.add_command(keys_cli)
