"""Tests for PKCE verifier/challenge generation."""

import base64
import hashlib
import re

import pytest

from calendar_scheduler.google.pkce import challenge_from_verifier, generate_verifier

URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


class TestGenerateVerifier:
    """Test code verifier generation."""

    def test_default_length_in_range(self):
        """Should produce an 86-character verifier from 64 bytes."""
        verifier = generate_verifier()
        assert len(verifier) == 86
        assert URL_SAFE.match(verifier)

    @pytest.mark.parametrize("length,expected", [(32, 43), (48, 64), (96, 128)])
    def test_boundary_lengths(self, length, expected):
        """Should accept byte lengths whose encoding stays within 43-128."""
        assert len(generate_verifier(length)) == expected

    @pytest.mark.parametrize("length", [0, 16, 31, 97, 128])
    def test_out_of_range_lengths_rejected(self, length):
        """Should refuse lengths that would violate the PKCE bounds."""
        with pytest.raises(ValueError, match="must be 43-128"):
            generate_verifier(length)

    def test_no_padding(self):
        """Should strip base64 padding."""
        assert "=" not in generate_verifier(33)

    def test_random(self):
        """Should differ between calls."""
        assert generate_verifier() != generate_verifier()


class TestChallengeFromVerifier:
    """Test S256 challenge derivation."""

    def test_rfc7636_appendix_b(self):
        """Should match the RFC 7636 example vector."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert challenge_from_verifier(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_matches_reference(self):
        """Should equal base64url(sha256(verifier)) without padding."""
        verifier = generate_verifier()
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest())
            .decode()
            .rstrip("=")
        )
        assert challenge_from_verifier(verifier) == expected

    def test_deterministic(self):
        """Should return the same challenge for the same verifier."""
        verifier = generate_verifier()
        assert challenge_from_verifier(verifier) == challenge_from_verifier(verifier)
        assert len(challenge_from_verifier(verifier)) == 43
