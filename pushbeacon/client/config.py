"""Reconciler configuration resolved once from the worker URL or a message."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

from pushbeacon.client.errors import ConfigurationError

# Accepted key names, in order of preference
WEBSITE_ID_KEYS = ("websiteId", "website_id")
VAPID_KEY_KEYS = ("vapidPublicKey", "vapidKey", "vapid_public_key")
API_URL_KEYS = ("apiUrl", "apiBase", "api_url")


def _first(values: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = values.get(key)
        if value:
            return str(value)
    return None


@dataclass(frozen=True)
class ReconcilerConfig:
    """Website identity, VAPID public key and backend base URL.

    The VAPID key is stored as given; it is validated when a reconciliation
    starts so a bad key is reported as a configuration error state.
    """

    website_id: str
    vapid_public_key: str
    api_url: str

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        fallback: "ReconcilerConfig | None" = None,
    ) -> "ReconcilerConfig":
        """Build a config from a flat mapping, filling gaps from ``fallback``."""
        website_id = _first(values, WEBSITE_ID_KEYS) or (fallback and fallback.website_id)
        vapid_key = _first(values, VAPID_KEY_KEYS) or (fallback and fallback.vapid_public_key)
        api_url = _first(values, API_URL_KEYS) or (fallback and fallback.api_url)

        missing = [
            name
            for name, value in (
                ("websiteId", website_id),
                ("vapidPublicKey", vapid_key),
                ("apiUrl", api_url),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")

        return cls(
            website_id=website_id,
            vapid_public_key=vapid_key,
            api_url=api_url.rstrip("/"),
        )

    @classmethod
    def from_url(cls, url: str) -> "ReconcilerConfig":
        """Read configuration from the service worker script URL query."""
        query = parse_qs(urlsplit(url).query)
        return cls.from_mapping({key: values[0] for key, values in query.items() if values})

    @classmethod
    def from_message(
        cls,
        message: Mapping[str, Any],
        fallback: "ReconcilerConfig | None" = None,
    ) -> "ReconcilerConfig":
        """Read configuration from a postMessage payload."""
        return cls.from_mapping(message, fallback=fallback)
