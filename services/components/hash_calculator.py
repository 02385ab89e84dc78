"""
HashCalculator component for course identity hashing.
"""
import hashlib


class HashCalculator:
    """
    Computes the content-identity hash that keys a course for its lifetime.
    """

    @staticmethod
    def identity_hash(title: str, url: str) -> str:
        """
        SHA-256 hex digest of ``title|url``.

        Args:
            title: Listing title as scraped
            url: Absolute listing URL

        Returns:
            64-char lower-case hex string
        """
        raw = f"{title}|{url}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()
