"""Shared fakes for key source tests."""

import base64
import json
import os
import threading
import time

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, padding as sym_padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from wvkeys.encryption.signers import RequestSigner


TRACK_FIXTURES = {
    "SD": (b"\x01" * 16, b"\x11" * 16, b"sd-pssh-data"),
    "HD": (b"\x02" * 16, b"\x22" * 16, b"hd-pssh-data"),
    "AUDIO": (b"\x03" * 16, b"\x33" * 16, b"audio-pssh-data"),
}


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_track(track_type, key=None, key_id=None, pssh_data=None, drm_type="WIDEVINE"):
    default_key, default_key_id, default_pssh = TRACK_FIXTURES.get(
        track_type, (b"\x09" * 16, b"\x99" * 16, b"other")
    )
    return {
        "type": track_type,
        "key": b64(key if key is not None else default_key),
        "key_id": b64(key_id if key_id is not None else default_key_id),
        "pssh": [{"drm_type": drm_type, "data": b64(pssh_data or default_pssh)}],
    }


def make_license(status="OK", tracks=None) -> bytes:
    body = {"status": status}
    if tracks is None and status == "OK":
        tracks = [make_track(t) for t in ("SD", "HD", "AUDIO")]
    if tracks is not None:
        body["tracks"] = tracks
    return json.dumps(body).encode("utf-8")


def make_response(status="OK", tracks=None) -> bytes:
    """Raw server response envelope around a license body."""
    return json.dumps({"response": b64(make_license(status, tracks))}).encode("utf-8")


class ScriptedFetcher:
    """Fake transport replaying scripted responses; exceptions in the script are raised."""

    def __init__(self, responses, delay=0.0):
        self.responses = list(responses)
        self.delay = delay
        self.posts = []
        self._lock = threading.Lock()

    def get(self, url):
        raise AssertionError("get() is not used by the key source")

    def post(self, url, data):
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.posts.append((url, data))
            if not self.responses:
                raise AssertionError("Unexpected extra post")
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FixedSigner(RequestSigner):
    def __init__(self, signature=b"signature", signer_name="widevine_test"):
        super().__init__(signer_name)
        self.signature = signature
        self.messages = []

    def generate_signature(self, message):
        self.messages.append(message)
        return self.signature


class FailingSigner(RequestSigner):
    def __init__(self):
        super().__init__("broken")

    def generate_signature(self, message):
        raise RuntimeError("HSM unavailable")


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def signer():
    return FixedSigner()


# Key material and verification helpers. The package only signs, so the
# inverse operations used to check signatures live here.

HASHES = {"sha1": hashes.SHA1, "sha256": hashes.SHA256}


def generate_symmetric_key(key_size=128):
    return os.urandom(key_size // 8)


def aes_cbc_decrypt(iv, ciphertext, key):
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = sym_padding.PKCS7(algorithms.AES.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def generate_rsa_keypair(key_size=2048):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return private_key, private_key.public_key()


def serialize_private_key(private_key, format="pem", password=None):
    encoding = serialization.Encoding.PEM if format == "pem" else serialization.Encoding.DER
    encryption = (
        serialization.BestAvailableEncryption(password) if password
        else serialization.NoEncryption()
    )
    return private_key.private_bytes(encoding, serialization.PrivateFormat.PKCS8, encryption)


def rsa_pss_verify(message, signature, public_key, hash_algorithm="sha1"):
    """True if ``signature`` is a PSS signature with MGF1 and a digest-length salt."""
    hash_alg = HASHES[hash_algorithm]()
    pss = padding.PSS(mgf=padding.MGF1(hash_alg), salt_length=hash_alg.digest_size)
    try:
        public_key.verify(signature, message, pss, hash_alg)
    except InvalidSignature:
        return False
    return True
