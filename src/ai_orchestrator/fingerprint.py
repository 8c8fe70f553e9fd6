"""Input fingerprinting for cache keys.

Image fingerprints are a truncated SHA-256 of the decoded bytes. This is a
content hash, not a perceptual hash: pixel-identical uploads share a cache
entry, but a recompressed or cropped copy of the same photo does not. The
digest is one-way, so no image data can be recovered from a cache key.
"""

import base64
import binascii
import hashlib
import re
import unicodedata

FINGERPRINT_BYTES = 8  # 64-bit digest, 16 hex chars

DEFAULT_LANGUAGE_FAMILY = "latin"

LANGUAGE_FAMILIES: dict[str, str] = {
    # Latin script
    "en": "latin", "es": "latin", "fr": "latin", "de": "latin", "pt": "latin",
    "it": "latin", "nl": "latin", "pl": "latin", "sv": "latin", "da": "latin",
    "no": "latin", "nb": "latin", "fi": "latin", "ro": "latin", "cs": "latin",
    "tr": "latin", "id": "latin", "vi": "latin",
    # Chinese / Japanese / Korean
    "zh": "cjk", "ja": "cjk", "ko": "cjk",
    # Indic scripts
    "hi": "indic", "bn": "indic", "ta": "indic", "te": "indic", "mr": "indic",
    "gu": "indic", "pa": "indic",
    # Arabic script
    "ar": "arabic", "fa": "arabic", "ur": "arabic",
    # Cyrillic script
    "ru": "cyrillic", "uk": "cyrillic", "bg": "cyrillic", "sr": "cyrillic",
    "be": "cyrillic", "kk": "cyrillic",
}

_DATA_URI_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


def strip_data_uri(encoded: str) -> str:
    """Remove a leading ``data:image/...;base64,`` prefix, if any."""
    return _DATA_URI_PREFIX.sub("", encoded.strip())


def fingerprint_image(data: bytes) -> str:
    """Return a compact, deterministic digest of raw image bytes."""
    return hashlib.sha256(data).digest()[:FINGERPRINT_BYTES].hex()


def fingerprint_base64(encoded: str) -> str:
    """Fingerprint a base64 image, with or without a ``data:`` URI prefix.

    Falls back to hashing the encoded text itself when it is not valid
    base64, so malformed input still maps to a stable key.
    """
    clean = strip_data_uri(encoded)
    try:
        raw = base64.b64decode(clean, validate=True)
    except (binascii.Error, ValueError):
        raw = encoded.encode("utf-8")
    return fingerprint_image(raw)


def normalize_text(text: str) -> str:
    """Lower-case, trim and strip diacritics ("Crème " -> "creme")."""
    decomposed = unicodedata.normalize("NFD", text.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def language_family(code: str | None) -> str:
    """Bucket a locale code ("pt-BR", "zh_TW") into a coarse script family."""
    if not code:
        return DEFAULT_LANGUAGE_FAMILY
    primary = re.split(r"[-_]", code.strip().lower(), maxsplit=1)[0]
    return LANGUAGE_FAMILIES.get(primary, DEFAULT_LANGUAGE_FAMILY)


def estimate_decoded_size(encoded: str) -> int:
    """Estimate decoded byte size of a base64 payload without decoding it."""
    clean = strip_data_uri(encoded)
    padding = clean[-2:].count("=") if clean else 0
    return max(0, (len(clean) * 3) // 4 - padding)
