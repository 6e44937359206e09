from __future__ import annotations

import base64
import binascii
import logging
import os

import requests

from ..shared.errors import TemplateAssetError

logger = logging.getLogger("eventcert.assets")

ASSET_SCHEME = "asset://"
DEFAULT_TIMEOUT_SECONDS = 10.0

_REQUEST_HEADERS = {
    "User-Agent": "eventcert certificate renderer",
    "Accept": "image/png,image/jpeg,image/*,application/pdf;q=0.8,*/*;q=0.5",
}


def _safe_asset_path(assets_dir: str, candidate: str | None) -> str | None:
    raw = (candidate or "").strip()
    if not raw:
        return None
    assets_root = os.path.realpath(assets_dir)
    if os.path.isabs(raw):
        resolved = os.path.realpath(raw)
    else:
        resolved = os.path.realpath(os.path.join(assets_root, raw))
    if resolved.startswith(f"{assets_root}{os.sep}"):
        return resolved
    return None


class ImageFetcher:
    """Loads background images from remote URLs, data URLs or bundled assets."""

    def __init__(self, assets_dir: str, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.assets_dir = assets_dir
        self.timeout = timeout

    def fetch_bytes(self, url: str) -> bytes:
        source = (url or "").strip()
        if not source:
            raise TemplateAssetError("empty image reference", step="image")
        lowered = source.lower()
        if lowered.startswith(("http://", "https://")):
            return self._fetch_remote(source)
        if lowered.startswith("data:"):
            return self._decode_data_url(source)
        if lowered.startswith(ASSET_SCHEME):
            source = source[len(ASSET_SCHEME) :]
        return self._read_asset(source)

    def _fetch_remote(self, url: str) -> bytes:
        try:
            response = requests.get(
                url,
                timeout=self.timeout,
                allow_redirects=True,
                headers=_REQUEST_HEADERS,
            )
        except requests.RequestException as exc:
            raise TemplateAssetError(
                f"Failed to fetch template image: {exc}", step="image", identifier=url
            ) from exc
        if response.status_code != 200 or not response.content:
            logger.error(
                "[cert-image] fetch failed url=%s status=%s", url, response.status_code
            )
            raise TemplateAssetError(
                f"Failed to fetch template image: {response.status_code} {response.reason}",
                step="image",
                identifier=url,
            )
        logger.info("[cert-image] fetched url=%s bytes=%s", url, len(response.content))
        return response.content

    def _decode_data_url(self, url: str) -> bytes:
        header, sep, payload = url.partition(",")
        if not sep or ";base64" not in header.lower():
            raise TemplateAssetError(
                "only base64 data URLs are supported", step="image", identifier=header
            )
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TemplateAssetError(
                "malformed data URL", step="image", identifier=header
            ) from exc

    def _read_asset(self, name: str) -> bytes:
        path = _safe_asset_path(self.assets_dir, name)
        if not path or not os.path.isfile(path):
            raise TemplateAssetError(
                f"Template asset not found: {name!r} in {self.assets_dir}",
                step="image",
                identifier=name,
            )
        try:
            with open(path, "rb") as handle:
                return handle.read()
        except OSError as exc:
            raise TemplateAssetError(
                f"Template asset unreadable: {path}", step="image", identifier=name
            ) from exc
