"""
Asymmetric primitives used for request signing.

Provides RSA-PSS signatures over license requests. The license server
verifies signatures with SHA-1, MGF1-SHA-1 and a salt as long as the digest,
so those are the defaults here; SHA-256 and friends remain selectable for
servers that accept them.
"""

from typing import Optional
from cryptography.hazmat.primitives.asymmetric import rsa, padding
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.backends import default_backend


def rsa_pss_sign(message: bytes, private_key: rsa.RSAPrivateKey,
                 hash_algorithm: Optional[str] = "sha1") -> bytes:
    """Sign a message using RSASSA-PSS.

    Args:
        message: Data to sign
        private_key: RSA private key for signing
        hash_algorithm: Hash algorithm ("sha1", "sha256", "sha384", "sha512")

    Returns:
        Digital signature bytes
    """
    hash_alg = _get_hash_algorithm(hash_algorithm)
    signature = private_key.sign(message, _pss_padding(hash_alg), hash_alg)
    return signature


def deserialize_private_key(key_bytes: bytes,
                            password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
    """Deserialize a private key from PEM or DER format.

    Args:
        key_bytes: Serialized key data
        password: Password if key is encrypted

    Returns:
        RSA private key

    Raises:
        ValueError: If the data is not a readable RSA private key
    """
    if key_bytes.lstrip().startswith(b"-----BEGIN"):
        key = serialization.load_pem_private_key(
            key_bytes,
            password=password,
            backend=default_backend()
        )
    else:
        key = serialization.load_der_private_key(
            key_bytes,
            password=password,
            backend=default_backend()
        )
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("Private key must be an RSA key")
    return key


def _pss_padding(hash_alg: hashes.HashAlgorithm) -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hash_alg),
        salt_length=hash_alg.digest_size
    )


def _get_hash_algorithm(name: Optional[str] = "sha1"):
    """Get cryptography hash algorithm instance.

    Args:
        name: Hash algorithm name

    Returns:
        Hash algorithm instance
    """
    if name == "sha256":
        return hashes.SHA256()
    elif name == "sha384":
        return hashes.SHA384()
    elif name == "sha512":
        return hashes.SHA512()
    else:
        return hashes.SHA1()  # Default
