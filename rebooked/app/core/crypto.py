"""Encryption of stored bank account numbers (Fernet)."""
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from rebooked.app.core.settings import get_settings


class EncryptionNotConfiguredError(RuntimeError):
    pass


@lru_cache(maxsize=1)
def _fernet() -> Fernet:
    key = get_settings().BANKING_ENCRYPTION_KEY
    if not key:
        raise EncryptionNotConfiguredError("BANKING_ENCRYPTION_KEY is not configured")
    return Fernet(key)


def encrypt_secret(secret: str) -> str:
    return _fernet().encrypt(secret.encode("utf-8")).decode("utf-8")


def decrypt_secret(encrypted_value: str) -> str:
    try:
        return _fernet().decrypt(encrypted_value.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise ValueError("Encrypted value cannot be decrypted with the configured key") from e


def mask_account_number(account_number: str) -> str:
    """Keep the last four digits: ``62000000123`` -> ``*******0123``."""
    if len(account_number) <= 4:
        return account_number
    return "*" * (len(account_number) - 4) + account_number[-4:]
