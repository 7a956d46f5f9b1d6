"""Password hashing with the ``bcrypt`` library (>=4.0).

bcrypt only reads the first 72 bytes of a secret and newer releases reject
longer input outright, so both hashing and checking truncate to 72 bytes.
"""

import bcrypt

_BCRYPT_MAX_BYTES = 72


def _secret(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(_secret(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_secret(plain), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False
