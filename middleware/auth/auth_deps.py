from typing import Annotated
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from core.config import settings
from schemas.auth_schema import UserData

oauth2_bearer = OAuth2PasswordBearer(tokenUrl='/auth/token', auto_error=False)


def get_token_from_cookie_or_header(request: Request, token_header: str | None = Depends(oauth2_bearer)) -> str:
    """
    Custom dependency to retrieve the token.
    Priority 1: HttpOnly Cookie (access_token)
    Priority 2: Authorization Header (Bearer ...)
    """
    token_cookie = request.cookies.get("access_token")
    if token_cookie:
        return token_cookie

    if token_header:
        return token_header

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated. No token found in cookie or header.",
    )


async def get_current_user(token: Annotated[str, Depends(get_token_from_cookie_or_header)]) -> UserData:
    """
    Decodes the JWT token and returns user data.
    Raises 401 if validation fails.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        username: str = payload.get('sub')
        user_id: int = payload.get('id')
        email: str = payload.get('email')
        role: str = payload.get('role') or 'user'

        if username is None or user_id is None or email is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail='Could not validate credentials: Missing token payload data.'
            )

        return UserData(username=username, id=user_id, email=email, role=role)

    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Could not validate credentials: Invalid token signature or format.'
        )


async def require_media_uploader(user: Annotated[UserData, Depends(get_current_user)]) -> UserData:
    """Only roles listed in MEDIA_UPLOAD_ROLES may create listing media."""
    if user.role not in settings.MEDIA_UPLOAD_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Forbidden: insufficient permissions'
        )
    return user


# Dependency for routes that create or inspect listing media
uploader_dependency = Annotated[UserData, Depends(require_media_uploader)]
