"""
User session tokens - JWT generation and validation for Meadow sessions
"""

import jwt
import time
import uuid
import logging
from typing import Any, Dict, Optional

from meadow_endpoints.config.settings import SessionJWTConfig
from meadow_endpoints.models.session import UserSession

logger = logging.getLogger(__name__)


class SessionJWTService:
    """Signs and validates the bearer tokens that carry a UserSession"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.jwt_config = config or SessionJWTConfig.get_config()
        self.secret_key = self.jwt_config["secret"]
        self.algorithm = self.jwt_config["allowed_algorithms"][0]
        self.issuer = self.jwt_config["issuer"]
        self.audience = self.jwt_config["audience"]

    def generate_session_token(
        self,
        user_id: int,
        role_index: int,
        customer_id: int = 0,
        session_id: Optional[str] = None
    ) -> str:
        """
        Issue a session token

        Args:
            user_id: UserID of the caller (the ``sub`` claim)
            role_index: UserRoleIndex checked against endpoint levels
            customer_id: CustomerID used by customer scoped authorizers
            session_id: Session identifier; generated when omitted

        Returns:
            JWT token string
        """
        current_time = int(time.time())

        payload = {
            "iss": self.issuer,
            "sub": str(user_id),
            "aud": self.audience,
            "role_index": role_index,
            "customer_id": customer_id,
            "session_id": session_id or str(uuid.uuid4()),
            "iat": current_time,
            "exp": current_time + self.jwt_config["max_token_age"]
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Generated session token for user {user_id} with role index {role_index}")
        return token

    def validate_session_token(self, token: str) -> UserSession:
        """
        Validate a session token and build the caller's UserSession

        Args:
            token: JWT token string

        Returns:
            Logged in UserSession

        Raises:
            jwt.InvalidTokenError: If the token is invalid, expired or tampered with
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=self.jwt_config["allowed_algorithms"],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "aud", "iss"]}
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token has expired")
            raise jwt.InvalidTokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Session token validation failed: {str(e)}")
            raise

        try:
            user_id = int(payload["sub"])
            role_index = int(payload.get("role_index", 0))
            customer_id = int(payload.get("customer_id", 0))
        except (TypeError, ValueError):
            raise jwt.InvalidTokenError("Malformed session claims")

        return UserSession(
            session_id=str(payload.get("session_id", "")),
            logged_in=True,
            user_id=user_id,
            user_role_index=role_index,
            customer_id=customer_id
        )


# Global service instance
_session_jwt_service: Optional[SessionJWTService] = None


def get_session_jwt_service() -> SessionJWTService:
    """Get the global session token service instance"""
    global _session_jwt_service
    if _session_jwt_service is None:
        _session_jwt_service = SessionJWTService()
    return _session_jwt_service


def generate_session_token(user_id: int, role_index: int, customer_id: int = 0, session_id: Optional[str] = None) -> str:
    """Issue a session token for a user"""
    return get_session_jwt_service().generate_session_token(user_id, role_index, customer_id, session_id)


def validate_session_token(token: str) -> UserSession:
    """Validate a session token into a UserSession"""
    return get_session_jwt_service().validate_session_token(token)
