"""Value type for secret material that is only ever held in sealed form."""

from __future__ import annotations

from typing import Protocol


class SecretCipher(Protocol):
    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


class EncryptedSecret:
    """Opaque ciphertext wrapper; plaintext is only reachable through ``open``."""

    __slots__ = ("_ciphertext",)

    def __init__(self, ciphertext: str) -> None:
        if not ciphertext:
            raise ValueError("EncryptedSecret requires a non-empty ciphertext.")
        self._ciphertext = ciphertext

    @classmethod
    def seal(cls, plaintext: str, cipher: SecretCipher) -> "EncryptedSecret":
        return cls(cipher.encrypt(plaintext))

    def open(self, cipher: SecretCipher) -> str:
        return cipher.decrypt(self._ciphertext)

    @property
    def ciphertext(self) -> str:
        return self._ciphertext

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EncryptedSecret):
            return NotImplemented
        return self._ciphertext == other._ciphertext

    def __hash__(self) -> int:
        return hash(self._ciphertext)

    def __repr__(self) -> str:
        return "EncryptedSecret('***')"

    __str__ = __repr__


__all__ = ["EncryptedSecret", "SecretCipher"]
