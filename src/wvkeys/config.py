"""
YAML configuration for building a key source.

Example:

    key_server_url: https://license.uat.widevine.com/cenc/getcontentkey/widevine_test
    content_id: "3031323334353637"
    signer:
      name: widevine_test
      aes_signing_key: "1ae8ccd0e7985cc0b6203a55855a1034afc252980e970ca90e5202689f947ab9"
      aes_signing_iv: "d58ce954203b7c9a9a9d467f59839249"
    retry:
      max_attempts: 5
      first_delay_ms: 1000
    transport:
      timeout_seconds: 60
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .encryption.signers import AesRequestSigner, RequestSigner, RsaRequestSigner
from .errors import InvalidArgumentError
from .license.key_source import WidevineKeySource
from .license.retry import RetryPolicy
from .transport.http_fetcher import DEFAULT_TIMEOUT_SECONDS, HttpFetcher, SimpleHttpFetcher


@dataclass
class SignerConfig:
    name: str
    aes_signing_key: Optional[str] = None
    aes_signing_iv: Optional[str] = None
    rsa_signing_key_path: Optional[str] = None

    def validate(self) -> None:
        if not self.name:
            raise InvalidArgumentError("Signer name is required")
        has_aes = bool(self.aes_signing_key or self.aes_signing_iv)
        has_rsa = bool(self.rsa_signing_key_path)
        if has_aes and has_rsa:
            raise InvalidArgumentError("Configure either an AES or an RSA signing key, not both")
        if has_aes and not (self.aes_signing_key and self.aes_signing_iv):
            raise InvalidArgumentError("AES signing requires both a key and an IV")
        if not has_aes and not has_rsa:
            raise InvalidArgumentError("No signing key configured")


@dataclass
class KeySourceConfig:
    key_server_url: str
    content_id: bytes
    signer: SignerConfig
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def parse_content_id(content_id_hex: str) -> bytes:
    """Decode a hex content ID, raising InvalidArgumentError if malformed or empty."""
    try:
        content_id = binascii.unhexlify(str(content_id_hex))
    except (binascii.Error, ValueError) as e:
        raise InvalidArgumentError(f"Content ID must be hex: {e}") from e
    if not content_id:
        raise InvalidArgumentError("Content ID must not be empty")
    return content_id


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise InvalidArgumentError(f"'{name}' must be a mapping")
    return value


def config_from_dict(data: Dict[str, Any]) -> KeySourceConfig:
    """Build and validate a KeySourceConfig from parsed YAML data."""
    if not isinstance(data, dict):
        raise InvalidArgumentError("Configuration must be a mapping")
    for required in ("key_server_url", "content_id", "signer"):
        if not data.get(required):
            raise InvalidArgumentError(f"Missing required setting: {required}")

    signer_data = _section(data, "signer")
    signer = SignerConfig(
        name=str(signer_data.get("name", "")),
        aes_signing_key=signer_data.get("aes_signing_key"),
        aes_signing_iv=signer_data.get("aes_signing_iv"),
        rsa_signing_key_path=signer_data.get("rsa_signing_key_path"),
    )
    signer.validate()

    retry_data = _section(data, "retry")
    transport_data = _section(data, "transport")
    try:
        retry = RetryPolicy(
            max_attempts=int(retry_data.get("max_attempts", RetryPolicy.max_attempts)),
            first_delay_ms=int(retry_data.get("first_delay_ms", RetryPolicy.first_delay_ms)),
        )
        timeout = float(transport_data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Invalid retry or transport setting: {e}") from e

    return KeySourceConfig(
        key_server_url=str(data["key_server_url"]),
        content_id=parse_content_id(data["content_id"]),
        signer=signer,
        retry=retry,
        timeout_seconds=timeout,
    )


def load_config(path: str) -> KeySourceConfig:
    """Load a key source configuration from a YAML file.

    Raises:
        InvalidArgumentError: If the file is missing, not YAML, or incomplete
    """
    config_path = Path(path)
    if not config_path.exists():
        raise InvalidArgumentError(f"Config file not found: {path}")
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise InvalidArgumentError(f"{path} is not UTF-8 text: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"{path} is not valid YAML: {e}") from e
    return config_from_dict(data)


def build_signer(signer: SignerConfig) -> RequestSigner:
    signer.validate()
    if signer.rsa_signing_key_path:
        key_path = Path(signer.rsa_signing_key_path)
        if not key_path.exists():
            raise InvalidArgumentError(f"RSA signing key not found: {key_path}")
        return RsaRequestSigner.from_pem(signer.name, key_path.read_bytes())
    return AesRequestSigner.from_hex(signer.name, signer.aes_signing_key, signer.aes_signing_iv)


def build_key_source(config: KeySourceConfig,
                     http_fetcher: Optional[HttpFetcher] = None) -> WidevineKeySource:
    """Create a key source with the signer, transport and retry policy from ``config``."""
    return WidevineKeySource(
        config.key_server_url,
        config.content_id,
        build_signer(config.signer),
        http_fetcher=http_fetcher or SimpleHttpFetcher(timeout=config.timeout_seconds),
        retry_policy=config.retry,
    )
