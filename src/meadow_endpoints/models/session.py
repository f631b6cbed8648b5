"""
User session model
"""

from pydantic import BaseModel


class UserSession(BaseModel):
    """Identity of the caller, as resolved from the session token"""
    session_id: str = ""
    logged_in: bool = False
    user_id: int = 0
    user_role_index: int = 0
    customer_id: int = 0


def anonymous_session() -> UserSession:
    """Session for requests that carry no credentials"""
    return UserSession()
