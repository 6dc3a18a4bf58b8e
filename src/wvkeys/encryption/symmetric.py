"""
Symmetric primitives used for request signing.

Wraps the cryptography library's AES-CBC mode with PKCS7 padding, which is
what the license server expects for AES-signed requests.
"""

from typing import Optional, Tuple
import os
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.backends import default_backend


AES_BLOCK_SIZE = 16
VALID_AES_KEY_SIZES = (16, 24, 32)


def aes_cbc_encrypt(plaintext: bytes, key: bytes,
                    iv: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """Encrypt plaintext using AES-CBC with PKCS7 padding.

    Args:
        plaintext: Data to encrypt
        key: 128, 192 or 256-bit encryption key
        iv: 128-bit IV; a random one is generated when omitted

    Returns:
        Tuple of (IV, ciphertext)
    """
    if iv is None:
        iv = os.urandom(AES_BLOCK_SIZE)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded_data = padder.update(plaintext) + padder.finalize()

    cipher = Cipher(
        algorithms.AES(key),
        modes.CBC(iv),
        backend=default_backend()
    )
    encryptor = cipher.encryptor()
    ciphertext = encryptor.update(padded_data) + encryptor.finalize()
    return iv, ciphertext
