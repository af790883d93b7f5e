import hashlib
import secrets

TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(s: str) -> str:
    return hashlib.sha256(s.encode()).hexdigest()
