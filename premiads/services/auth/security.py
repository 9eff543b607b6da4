import logging
from jose import JWTError, jwt
from typing import Optional

from premiads.core.config import SECRET_KEY, ALGORITHM
from premiads.models.auth.user import TokenData, UserRole, Caller

logger = logging.getLogger(__name__)


class SecurityService:
    """Verifies bearer tokens issued by the identity provider"""

    def __init__(self, secret_key: str = SECRET_KEY, algorithm: str = ALGORITHM):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify_token(self, token: Optional[str], token_type: str = "access") -> Optional[TokenData]:
        """Verify and decode JWT token"""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Rejected bearer token: %s", e)
            return None

        # Tokens without a type are accepted as access tokens
        if payload.get("type", token_type) != token_type:
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        try:
            role = UserRole(payload.get("role", UserRole.PARTICIPANT.value))
        except ValueError:
            logger.info("Token for %s carries unknown role %r", user_id, payload.get("role"))
            return None

        return TokenData(user_id=str(user_id), role=role, email=payload.get("email"))

    def caller_from_token(self, token: Optional[str]) -> Optional[Caller]:
        token_data = self.verify_token(token)
        if token_data is None:
            return None
        return Caller(user_id=token_data.user_id, role=token_data.role, email=token_data.email)


security_service = SecurityService()
