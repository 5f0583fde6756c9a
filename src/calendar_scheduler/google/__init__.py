"""Google OAuth (PKCE) authorization utilities."""

from calendar_scheduler.google.oauth import SCOPES, AuthorizationState, GoogleOAuth
from calendar_scheduler.google.pkce import challenge_from_verifier, generate_verifier

__all__ = [
    "GoogleOAuth",
    "AuthorizationState",
    "SCOPES",
    "generate_verifier",
    "challenge_from_verifier",
]
