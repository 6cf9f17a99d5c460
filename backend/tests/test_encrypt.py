from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet

from app.exceptions import ConfigurationError
from app.utils.encrypt import decrypt_token, encrypt_token


def test_token_is_not_stored_in_clear():
    encrypted = encrypt_token("secret-token")
    assert "secret-token" not in encrypted
    assert decrypt_token(encrypted) == "secret-token"


def test_token_from_another_key_is_a_configuration_error():
    encrypted = encrypt_token("secret-token")
    with patch("app.utils.encrypt.settings.encryption_key", Fernet.generate_key().decode()):
        with pytest.raises(ConfigurationError):
            decrypt_token(encrypted)


def test_malformed_key_is_a_configuration_error():
    with patch("app.utils.encrypt.settings.encryption_key", "not-a-key"):
        with pytest.raises(ConfigurationError):
            encrypt_token("secret-token")
