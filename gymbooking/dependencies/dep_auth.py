from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import ValidationError
from gymbooking.models.mod_auth import AuthUser, TokenData
from gymbooking.configuration.config import Config

# Tokens are issued by the platform auth service; this API only verifies them
bearer_scheme = HTTPBearer(auto_error=False)

def _credentials_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def verify_token(token: str) -> TokenData:
    """
    Verify the JWT token issued by the platform's auth service and extract its claims.
    Raises HTTPException if token is invalid.
    """
    if not Config.JWT_SECRET_KEY:
        raise _credentials_exception("Authentication is not configured")
    try:
        payload = jwt.decode(
            token,
            Config.JWT_SECRET_KEY,
            algorithms=[Config.JWT_ALGORITHM],
        )
        return TokenData(
            id=payload.get("sub"),
            email=payload.get("email"),
            name=payload.get("name"),
            role=payload.get("role", "member"),
            exp=payload.get("exp"),
        )
    except ExpiredSignatureError:
        raise _credentials_exception("Token has expired")
    except (JWTError, ValidationError):
        raise _credentials_exception("Could not validate credentials")

def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AuthUser:
    """
    Get the current authenticated user from the bearer token.
    This is the main dependency to be used in protected endpoints.
    """
    if credentials is None:
        raise _credentials_exception("Not authenticated")
    token_data = verify_token(credentials.credentials)
    return AuthUser(
        id=token_data.id,
        email=token_data.email,
        name=token_data.name,
        role=token_data.role
    )

def get_current_staff(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Dependency for endpoints that require staff or admin access"""
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to perform this action"
        )
    return current_user
