import hashlib
import secrets

import bcrypt


def hash_password(password: str) -> str:
    password_hash = hashlib.sha256(password.encode("utf-8")).digest()

    # Generate salt and hash with bcrypt
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_hash, salt)

    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.
    Uses SHA-256 pre-hashing to match the hashing method.
    """
    if not hashed_password:
        return False
    password_hash = hashlib.sha256(plain_password.encode("utf-8")).digest()
    return bcrypt.checkpw(password_hash, hashed_password.encode("utf-8"))


def generate_token() -> str:
    """Generate an opaque bearer token (128 random bytes, hex encoded)"""
    return secrets.token_hex(128)


def generate_otp() -> str:
    """Generate a 6-digit OTP in the range 100000-999999"""
    return str(100000 + secrets.randbelow(900000))
