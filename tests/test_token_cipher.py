try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from social_publisher.core.exceptions import ConfigurationError, CryptoError
from social_publisher.models.secret import EncryptedSecret
from social_publisher.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    plaintext = "sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext

    decrypted = cipher.decrypt(encrypted)
    assert decrypted == plaintext


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(CryptoError):
        cipher.decrypt("not-valid")


def test_token_cipher_rejects_foreign_key() -> None:
    encrypted = TokenCipherService(secret="key-one").encrypt("token")

    with pytest.raises(CryptoError):
        TokenCipherService(secret="key-two").decrypt(encrypted)


def test_token_cipher_requires_secret() -> None:
    with pytest.raises(ConfigurationError):
        TokenCipherService(secret="")


def test_encrypted_secret_hides_plaintext() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    sealed = EncryptedSecret.seal("access-token", cipher)

    assert "access-token" not in repr(sealed)
    assert "access-token" not in sealed.ciphertext
    assert sealed.open(cipher) == "access-token"
