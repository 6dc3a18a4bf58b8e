"""
Request signers for the license server.

A signer turns the serialized license request into the signature bytes that
go into the signed envelope, and names itself so the server can look up the
matching verification key.

Supported signers:
- AesRequestSigner: AES-CBC encryption of the SHA-1 digest of the request
- RsaRequestSigner: RSASSA-PSS with SHA-1 over the request
"""

from __future__ import annotations

import binascii
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import InvalidArgumentError
from . import asymmetric, symmetric


class RequestSigner:
    """Base class for license request signers."""

    def __init__(self, signer_name: str):
        self.signer_name = signer_name

    def generate_signature(self, message: bytes) -> bytes:
        """Produce a signature over ``message``.

        Raises:
            Exception: Any failure; the key source reports it as a signing failure
        """
        raise NotImplementedError


class AesRequestSigner(RequestSigner):
    """Signs requests by AES-CBC encrypting their SHA-1 digest."""

    def __init__(self, signer_name: str, aes_key: bytes, iv: bytes):
        super().__init__(signer_name)
        if len(aes_key) not in symmetric.VALID_AES_KEY_SIZES:
            raise InvalidArgumentError(f"Invalid AES signing key size: {len(aes_key)} bytes")
        if len(iv) != symmetric.AES_BLOCK_SIZE:
            raise InvalidArgumentError(f"Invalid AES signing IV size: {len(iv)} bytes")
        self._aes_key = aes_key
        self._iv = iv

    @classmethod
    def from_hex(cls, signer_name: str, aes_key_hex: str, iv_hex: str) -> "AesRequestSigner":
        """Create a signer from hex-encoded key and IV strings."""
        try:
            aes_key = binascii.unhexlify(aes_key_hex)
            iv = binascii.unhexlify(iv_hex)
        except (binascii.Error, ValueError) as e:
            raise InvalidArgumentError(f"AES signing key and IV must be hex: {e}") from e
        return cls(signer_name, aes_key, iv)

    def generate_signature(self, message: bytes) -> bytes:
        digest = hashes.Hash(hashes.SHA1())
        digest.update(message)
        _, signature = symmetric.aes_cbc_encrypt(digest.finalize(), self._aes_key, self._iv)
        return signature


class RsaRequestSigner(RequestSigner):
    """Signs requests with RSASSA-PSS (SHA-1, salt length 20)."""

    def __init__(self, signer_name: str, private_key: rsa.RSAPrivateKey):
        super().__init__(signer_name)
        self._private_key = private_key

    @classmethod
    def from_pem(cls, signer_name: str, key_bytes: bytes,
                 password: Optional[bytes] = None) -> "RsaRequestSigner":
        return cls(signer_name, _load_rsa_key(key_bytes, password))

    @classmethod
    def from_der(cls, signer_name: str, key_bytes: bytes) -> "RsaRequestSigner":
        return cls(signer_name, _load_rsa_key(key_bytes, None))

    def generate_signature(self, message: bytes) -> bytes:
        return asymmetric.rsa_pss_sign(message, self._private_key, "sha1")


def _load_rsa_key(key_bytes: bytes, password: Optional[bytes]) -> rsa.RSAPrivateKey:
    try:
        return asymmetric.deserialize_private_key(key_bytes, password=password)
    except (ValueError, TypeError) as e:
        raise InvalidArgumentError(f"Unable to load RSA signing key: {e}") from e
