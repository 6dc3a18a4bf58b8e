"""Example: fetch track keys from a Widevine license server.

Uses the public Widevine test signer; point KEY_SERVER_URL at a server that
accepts it.
"""
import logging

from wvkeys.encryption.signers import AesRequestSigner
from wvkeys.license.key_source import WidevineKeySource
from wvkeys.license.types import REQUIRED_TRACK_TYPES

KEY_SERVER_URL = "https://license.uat.widevine.com/cenc/getcontentkey/widevine_test"
SIGNER_NAME = "widevine_test"
AES_SIGNING_KEY = "1ae8ccd0e7985cc0b6203a55855a1034afc252980e970ca90e5202689f947ab9"
AES_SIGNING_IV = "d58ce954203b7c9a9a9d467f59839249"


def demo():
	logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
	signer = AesRequestSigner.from_hex(SIGNER_NAME, AES_SIGNING_KEY, AES_SIGNING_IV)
	key_source = WidevineKeySource(KEY_SERVER_URL, b"example-content-id", signer)

	for track_type in REQUIRED_TRACK_TYPES:
		key = key_source.get_key(track_type)
		print(track_type, "key_id:", key.key_id.hex(), "pssh:", len(key.pssh), "bytes")


if __name__ == "__main__":
	demo()
