from cryptography.fernet import Fernet, InvalidToken
from app.config import settings
from app.exceptions import ConfigurationError


def get_fernet():
    """Returns the Fernet cipher built from the configured key."""
    try:
        return Fernet(settings.encryption_key.encode('utf-8'))
    except ValueError as e:
        raise ConfigurationError(f"ENCRYPTION_KEY is not a valid Fernet key: {e}") from e


def encrypt_token(token: str) -> str:
    """Encrypts an account API token for storage."""
    return get_fernet().encrypt(token.encode('utf-8')).decode('utf-8')


def decrypt_token(encrypted_token: str) -> str:
    """Decrypts a stored account API token."""
    try:
        return get_fernet().decrypt(encrypted_token.encode('utf-8')).decode('utf-8')
    except InvalidToken as e:
        raise ConfigurationError("Stored API token cannot be decrypted with the configured key") from e
