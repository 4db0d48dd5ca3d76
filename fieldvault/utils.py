from base64 import b64decode
from binascii import Error as BinasciiError


def strict_b64decode(val: str) -> bytes:
    # line-wrapped output, e.g. from `openssl rand -base64 96`, is accepted
    try:
        return b64decode("".join(val.split()), validate=True)
    except (BinasciiError, ValueError):
        raise ValueError("Value is not valid base64") from None
