from base64 import b64encode
from typing import Any

from bson.binary import Binary
from bson.objectid import ObjectId
from flask.json.provider import DefaultJSONProvider


class BSONJSONProvider(DefaultJSONProvider):
    """Renders the BSON types found in fetched documents"""

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, ObjectId):
            return str(o)
        if isinstance(o, Binary):
            return b64encode(o).decode()
        return DefaultJSONProvider.default(o)
