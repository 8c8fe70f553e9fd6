"""Tests for input fingerprinting and normalization."""

import base64

import pytest

from ai_orchestrator.fingerprint import (
    estimate_decoded_size,
    fingerprint_base64,
    fingerprint_image,
    language_family,
    normalize_text,
    strip_data_uri,
)


def test_fingerprint_is_deterministic_and_compact():
    first = fingerprint_image(b"same bytes")
    assert first == fingerprint_image(b"same bytes")
    assert len(first) == 16
    int(first, 16)  # hex


def test_fingerprint_differs_for_different_bytes():
    assert fingerprint_image(b"image one") != fingerprint_image(b"image two")


def test_near_duplicate_bytes_do_not_collide():
    # content hash, not perceptual: one flipped byte is a different image
    assert fingerprint_image(b"\x00" * 64) != fingerprint_image(b"\x00" * 63 + b"\x01")


def test_base64_fingerprint_ignores_data_uri_prefix():
    encoded = base64.b64encode(b"photo").decode()
    assert fingerprint_base64(encoded) == fingerprint_base64(f"data:image/jpeg;base64,{encoded}")
    assert fingerprint_base64(encoded) == fingerprint_image(b"photo")


def test_invalid_base64_still_fingerprints_stably():
    assert fingerprint_base64("not base64!!") == fingerprint_base64("not base64!!")


def test_strip_data_uri():
    assert strip_data_uri("data:image/png;base64,AAAA") == "AAAA"
    assert strip_data_uri("AAAA") == "AAAA"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Crème", "creme"),
        ("  Crème Brûlée ", "creme brulee"),
        ("JALAPEÑO", "jalapeno"),
        ("creme", "creme"),
    ],
)
def test_normalize_text(raw, expected):
    assert normalize_text(raw) == expected


@pytest.mark.parametrize(
    "code,family",
    [
        ("en", "latin"),
        ("pt-BR", "latin"),
        ("es", "latin"),
        ("zh_TW", "cjk"),
        ("ja", "cjk"),
        ("ar", "arabic"),
        ("hi", "indic"),
        ("ru", "cyrillic"),
        ("xx", "latin"),
        ("", "latin"),
        (None, "latin"),
    ],
)
def test_language_family(code, family):
    assert language_family(code) == family


def test_estimate_decoded_size():
    encoded = base64.b64encode(b"x" * 100).decode()
    assert estimate_decoded_size(encoded) == 100
    assert estimate_decoded_size(f"data:image/png;base64,{encoded}") == 100
    assert estimate_decoded_size("") == 0
