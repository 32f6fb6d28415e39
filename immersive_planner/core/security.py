"""
security.py
------------
Identity seam for the planner API.

Users sign in with the external identity provider, which issues an HS256
bearer token whose "sub" claim is the user id. Every plan and assistant route
resolves that id through get_current_user; no credentials are stored here.
"""

from datetime import datetime, timedelta
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from immersive_planner.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

# Plain bearer scheme: tokens come from the identity provider, there is no
# token endpoint on this service
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """Sign a token the way the identity provider does (local tooling and tests)."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    """
    Resolve the signed-in user for a request.

    Returns:
        str: the token's "sub" claim, used as the plan owner id.

    Raises:
        HTTPException: 401 when the header is missing, the token does not
        verify or has expired, or it carries no subject.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthorized()

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized()
    return str(user_id)
