#!/usr/bin/env python

import logging
import sys

from dotenv import load_dotenv

from fieldvault import create_app
from fieldvault.config import ConfigParseError, EncryptionSettings, load_config
from fieldvault.crypto.key_vault import create_data_key

logger = logging.getLogger("fieldvault")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s:%(levelname)s:%(message)s")
    load_dotenv()

    try:
        config = load_config()
        settings = EncryptionSettings.from_config(config)
    except ConfigParseError as e:
        logger.error(str(e))
        sys.exit(1)

    if not settings.key_id:
        try:
            key_id = create_data_key(settings)
        except Exception:
            logger.exception("Failed to create a data encryption key")
            sys.exit(1)

        print(f"Add this KEY_ID to your environment: {key_id}")
        sys.exit(0)

    app = create_app(config)
    logger.info(f"Server running on port {config['PORT']}")
    app.run(host=config["HOST"], port=config["PORT"])


if __name__ == "__main__":
    main()
