from datetime import timedelta
from typing import Dict, Optional

from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from .config import Settings
from .errors import InvalidToken

SESSION_PURPOSE = "session"
VERIFICATION_PURPOSE = "email_verification"
ADMIN_ROLE = "admin"


class TokenService:
    """Issues and decodes the signed bearer tokens used by the API.

    Tokens are stateless: nothing is stored server side, so a token stays valid
    until its ``exp`` claim passes. Every token carries a ``purpose`` claim so a
    verification link cannot be replayed as a session token and vice versa.
    Must be used inside an application context.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _issue(self, identity, purpose: str, expires: timedelta, **claims) -> str:
        additional_claims = {"purpose": purpose}
        additional_claims.update({k: v for k, v in claims.items() if v is not None})
        return create_access_token(
            identity=str(identity),
            additional_claims=additional_claims,
            expires_delta=expires,
        )

    def issue_session(self, user_id, email: str) -> str:
        return self._issue(
            user_id, SESSION_PURPOSE, self.settings.session_token_ttl, email=email
        )

    def issue_admin_session(self, admin_id, email: str) -> str:
        return self._issue(
            admin_id,
            SESSION_PURPOSE,
            self.settings.admin_token_ttl,
            email=email,
            role=ADMIN_ROLE,
        )

    def issue_verification(self, user_id, resend: bool = False) -> str:
        expires = (
            self.settings.resent_verification_token_ttl
            if resend
            else self.settings.verification_token_ttl
        )
        return self._issue(user_id, VERIFICATION_PURPOSE, expires)

    def decode(self, token: str, purpose: Optional[str] = None) -> Dict:
        try:
            claims = decode_token(token)
        except (JWTExtendedException, PyJWTError) as exc:
            raise InvalidToken("Invalid or expired token") from exc
        if purpose and claims.get("purpose") != purpose:
            raise InvalidToken("Invalid or expired token")
        if not claims.get("sub"):
            raise InvalidToken("Invalid or expired token")
        return claims
