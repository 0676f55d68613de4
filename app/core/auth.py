"""
Bearer token authentication

Tokens are issued by the surrounding web application; this service only
decodes them into a Principal. Nothing about the principal is cached between
requests.
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.core.logging import api_logger
from app.schemas.principal import Principal

# HTTP Bearer token schema
security = HTTPBearer(auto_error=False)


class AuthService:
    """Token encode/decode"""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None,
                 access_token_expire_minutes: Optional[int] = None):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = access_token_expire_minutes or settings.access_token_expire_minutes

    def create_access_token(self, principal: Principal, expires_delta: Optional[timedelta] = None) -> str:
        """Issue a token for a principal (tests and operator tooling)"""
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        )
        to_encode = {
            "sub": str(principal.id),
            "role": principal.role.value,
            "company_id": principal.company_id,
            "teams": [
                {"team_id": m.team_id, "role": m.role.value} for m in principal.teams
            ],
            "exp": expire,
            "type": "access",
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            api_logger.warning("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            api_logger.warning(f"JWT decode error: {e}")
            return None

        if payload.get("type", "access") != "access":
            return None
        return payload

    def principal_from_payload(self, payload: Dict[str, Any]) -> Optional[Principal]:
        try:
            return Principal(
                id=int(payload["sub"]),
                role=payload.get("role", "USER"),
                company_id=payload.get("company_id"),
                teams=payload.get("teams") or []
            )
        except (KeyError, ValueError, TypeError, PydanticValidationError) as e:
            api_logger.warning(f"Invalid token payload: {e}")
            return None


# Global auth service
auth_service = AuthService()


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Principal:
    """Principal of the current request; 401 without a valid bearer token"""
    if not credentials:
        raise _unauthenticated("Not authenticated")

    payload = auth_service.verify_token(credentials.credentials)
    if not payload:
        raise _unauthenticated("Invalid token")

    principal = auth_service.principal_from_payload(payload)
    if principal is None:
        raise _unauthenticated("Invalid token payload")
    return principal
