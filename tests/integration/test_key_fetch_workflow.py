"""Integration tests for the complete key fetch workflow."""

import base64
import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import TRACK_FIXTURES, ScriptedFetcher, generate_rsa_keypair, make_response, rsa_pss_verify
from wvkeys.encryption.signers import RsaRequestSigner
from wvkeys.errors import IncompleteTracksError, ServerTransientError
from wvkeys.license.key_source import WidevineKeySource
from wvkeys.license.types import TrackType
from wvkeys.media.pssh import pssh_data_from_box

URL = "https://license.example.com/widevine"


class FakeLicenseServer:
    """Verifies the signed envelope, then answers with scripted statuses."""

    def __init__(self, public_key, statuses):
        self.public_key = public_key
        self.statuses = list(statuses)
        self.requests = []
        self._lock = threading.Lock()

    def get(self, url):
        raise AssertionError("unexpected GET")

    def post(self, url, data):
        envelope = json.loads(data)
        request = base64.b64decode(envelope["request"])
        signature = base64.b64decode(envelope["signature"])
        if not rsa_pss_verify(request, signature, self.public_key):
            return make_response("SIGNATURE_FAILED")
        with self._lock:
            self.requests.append(json.loads(request))
            status = self.statuses.pop(0)
        return make_response(status)


@pytest.fixture(scope="module")
def rsa_keypair():
    return generate_rsa_keypair(2048)


class TestSignedWorkflow:

    def test_rsa_signed_fetch_after_transient_errors(self, rsa_keypair, sleep):
        """Test the server sees a verifiable request and keys arrive after retries."""
        private_key, public_key = rsa_keypair
        server = FakeLicenseServer(public_key, ["INTERNAL_ERROR"] * 4 + ["OK"])
        source = WidevineKeySource(
            URL, b"content-1234", RsaRequestSigner("widevine_test", private_key),
            http_fetcher=server, sleep=sleep,
        )

        keys = {t: source.get_key(t) for t in (TrackType.SD, TrackType.HD, TrackType.AUDIO)}

        assert len(server.requests) == 5
        assert sleep.calls == [1.0, 2.0, 4.0, 8.0]
        assert server.requests[0]["content_id"] == base64.b64encode(b"content-1234").decode()
        assert all(r == server.requests[0] for r in server.requests)
        for track_type, key in keys.items():
            expected_key, expected_key_id, expected_pssh = TRACK_FIXTURES[str(track_type)]
            assert key.key == expected_key
            assert key.key_id == expected_key_id
            assert pssh_data_from_box(key.pssh) == expected_pssh
        assert len({k.key for k in keys.values()}) == 3

        source.get_key(TrackType.SD)
        assert len(server.requests) == 5

    def test_exhaustion_then_caller_retry(self, rsa_keypair, sleep):
        """Test a caller may retry after the retry budget is exhausted."""
        private_key, public_key = rsa_keypair
        server = FakeLicenseServer(public_key, ["INTERNAL_ERROR"] * 5 + ["OK"])
        source = WidevineKeySource(
            URL, b"content-1234", RsaRequestSigner("widevine_test", private_key),
            http_fetcher=server, sleep=sleep,
        )

        with pytest.raises(ServerTransientError):
            source.get_key(TrackType.HD)
        assert len(server.requests) == 5

        assert source.get_key(TrackType.HD).key == TRACK_FIXTURES["HD"][0]
        assert len(server.requests) == 6


class TestConcurrentCallers:

    def test_single_fetch_for_concurrent_callers(self, signer):
        """Test many threads requesting keys at once cause one post."""
        fetcher = ScriptedFetcher([make_response("OK")], delay=0.05)
        source = WidevineKeySource(URL, b"content", signer, http_fetcher=fetcher)
        track_types = [TrackType.SD, TrackType.HD, TrackType.AUDIO] * 8
        barrier = threading.Barrier(len(track_types))

        def lookup(track_type):
            barrier.wait()
            return track_type, source.get_key(track_type)

        with ThreadPoolExecutor(max_workers=len(track_types)) as pool:
            results = list(pool.map(lookup, track_types))

        assert len(fetcher.posts) == 1
        for track_type, key in results:
            assert key.key == TRACK_FIXTURES[str(track_type)][0]

    def test_concurrent_callers_after_transient_recovery(self, signer, sleep):
        fetcher = ScriptedFetcher(
            [make_response("INTERNAL_ERROR")] * 2 + [make_response("OK")], delay=0.01
        )
        source = WidevineKeySource(URL, b"content", signer, http_fetcher=fetcher, sleep=sleep)

        with ThreadPoolExecutor(max_workers=6) as pool:
            keys = list(pool.map(lambda _: source.get_key(TrackType.AUDIO), range(6)))

        assert len(fetcher.posts) == 3
        assert sleep.calls == [1.0, 2.0]
        assert all(k is keys[0] for k in keys)

    def test_failed_fetch_lets_waiting_caller_retry(self, signer):
        """Test a caller queued behind a failed fetch starts a fresh attempt."""
        incomplete = make_response("OK", [
            {"type": "SD", "key": "AQ==", "key_id": "AQ==", "pssh": [{"drm_type": "WIDEVINE", "data": "AQ=="}]},
            {"type": "HD", "key": "AQ==", "key_id": "AQ==", "pssh": [{"drm_type": "WIDEVINE", "data": "AQ=="}]},
            {"type": "HD2", "key": "AQ==", "key_id": "AQ==", "pssh": [{"drm_type": "WIDEVINE", "data": "AQ=="}]},
        ])
        fetcher = ScriptedFetcher([incomplete, make_response("OK")], delay=0.05)
        source = WidevineKeySource(URL, b"content", signer, http_fetcher=fetcher)
        barrier = threading.Barrier(2)

        def lookup(_):
            barrier.wait()
            try:
                return source.get_key(TrackType.SD)
            except IncompleteTracksError as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(lookup, range(2)))

        assert len(fetcher.posts) == 2
        assert sum(isinstance(r, IncompleteTracksError) for r in results) == 1
        assert source.fetched
