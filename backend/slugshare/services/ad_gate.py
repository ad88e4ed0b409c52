"""Ad interstitial redirect protocol.

Gate:  a shareable link without ``ad=seen`` redirects to the interstitial,
       which receives the original URL as ``downloadUrl``.
Armed: the interstitial page counts down in the browser and then loads the
       original URL with ``ad=seen`` added.
Open:  a request carrying ``ad=seen`` goes straight to lookup and the
       access gate.

The countdown runs only in the client and the marker is taken at face
value. This is a UX step, not access control.
"""
from typing import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

AD_PARAM = "ad"
AD_SEEN = "seen"


class AdGate:
    def __init__(self, interstitial_path: str = "/ad", countdown_seconds: int = 5):
        self.interstitial_path = interstitial_path
        self.countdown_seconds = countdown_seconds

    @staticmethod
    def is_open(query: Mapping[str, str]) -> bool:
        return query.get(AD_PARAM) == AD_SEEN

    def interstitial_url(self, original_url: str) -> str:
        """Where to send a request that has not been through the ad yet."""
        params = urlencode({"showAd": "true", "downloadUrl": original_url})
        return f"{self.interstitial_path}?{params}"

    def gate(self, url: str, query: Mapping[str, str]) -> str | None:
        """Redirect target for a gated request, or None if the gate is open."""
        if self.is_open(query):
            return None
        return self.interstitial_url(url)

    @staticmethod
    def armed_url(download_url: str) -> str:
        """``download_url`` with ``ad=seen`` set, other parameters kept."""
        parts = urlsplit(download_url)
        params = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != AD_PARAM]
        params.append((AD_PARAM, AD_SEEN))
        return urlunsplit(parts._replace(query=urlencode(params)))

    @staticmethod
    def is_same_origin(download_url: str, host: str) -> bool:
        """Only relative URLs and URLs on ``host`` may be armed.

        Browsers read ``\\`` as ``/`` and drop tabs and newlines, so
        ``/\\evil.example`` would leave the site; such URLs are refused outright.
        """
        if "\\" in download_url or any(ord(c) < 0x21 or ord(c) == 0x7F for c in download_url):
            return False
        parts = urlsplit(download_url)
        if not parts.scheme and not parts.netloc:
            return download_url.startswith("/") and not download_url.startswith("//")
        return parts.scheme in ("http", "https") and parts.netloc == host
