from __future__ import annotations

import base64
import logging
from typing import Optional

import typer

from .config import (
    KeySourceConfig,
    build_key_source,
    config_from_dict,
    load_config,
    parse_content_id,
)
from .errors import KeySourceError
from .license.codec import build_request
from .license.types import REQUIRED_TRACK_TYPES
from .transport.http_fetcher import SimpleHttpFetcher

app = typer.Typer()


def _configure_logging(verbose: bool, debug: bool) -> None:
    log_level = logging.WARNING
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")


def _merge_options(config_path: Optional[str], overrides: dict) -> KeySourceConfig:
    data: dict = {}
    if config_path:
        base = load_config(config_path)
        data = {
            "key_server_url": base.key_server_url,
            "content_id": base.content_id.hex(),
            "signer": vars(base.signer).copy(),
            "retry": {
                "max_attempts": base.retry.max_attempts,
                "first_delay_ms": base.retry.first_delay_ms,
            },
            "transport": {"timeout_seconds": base.timeout_seconds},
        }

    signer = data.setdefault("signer", {})
    for name, value in overrides.items():
        if value is None:
            continue
        if name in ("key_server_url", "content_id"):
            data[name] = value
        else:
            signer[name] = value
    if overrides.get("rsa_signing_key_path"):
        signer.pop("aes_signing_key", None)
        signer.pop("aes_signing_iv", None)
    elif overrides.get("aes_signing_key"):
        signer.pop("rsa_signing_key_path", None)
    return config_from_dict(data)


@app.command("fetch-keys")
def fetch_keys(
    config: Optional[str] = typer.Option(None, "-c", "--config", help="Path to YAML key source config"),
    key_server_url: Optional[str] = typer.Option(None, "--key-server-url", help="License server URL"),
    content_id: Optional[str] = typer.Option(None, "--content-id", help="Content ID (hex)"),
    signer: Optional[str] = typer.Option(None, "--signer", help="Signer name"),
    aes_signing_key: Optional[str] = typer.Option(None, "--aes-signing-key", help="AES signing key (hex)"),
    aes_signing_iv: Optional[str] = typer.Option(None, "--aes-signing-iv", help="AES signing IV (hex)"),
    rsa_signing_key_path: Optional[str] = typer.Option(None, "--rsa-signing-key-path", help="Path to RSA signing key (PEM or DER)"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Log progress"),
    debug: bool = typer.Option(False, "--debug", help="Log protocol messages"),
):
    """Fetch the SD, HD and AUDIO keys for a content ID.

    Command line options override values from `--config`.
    """
    _configure_logging(verbose, debug)
    overrides = {
        "key_server_url": key_server_url,
        "content_id": content_id,
        "name": signer,
        "aes_signing_key": aes_signing_key,
        "aes_signing_iv": aes_signing_iv,
        "rsa_signing_key_path": rsa_signing_key_path,
    }
    try:
        key_source_config = _merge_options(config, overrides)
        with SimpleHttpFetcher(timeout=key_source_config.timeout_seconds) as fetcher:
            key_source = build_key_source(key_source_config, http_fetcher=fetcher)
            for track_type in REQUIRED_TRACK_TYPES:
                key = key_source.get_key(track_type)
                typer.echo(
                    f"{track_type}\tkey_id={key.key_id.hex()}\tkey={key.key.hex()}"
                    f"\tpssh={base64.b64encode(key.pssh).decode('ascii')}"
                )
    except KeySourceError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("build-request")
def build_request_command(
    content_id: str = typer.Argument(..., help="Content ID (hex)"),
):
    """Print the unsigned license request for a content ID."""
    try:
        request = build_request(parse_content_id(content_id))
    except KeySourceError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(request.decode("utf-8"))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
