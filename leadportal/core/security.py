from datetime import datetime, timezone, timedelta
from typing import Iterable, Optional

from jose import jwt, JWTError
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from leadportal.core.config import settings
from leadportal.core.enums import UserRole
from leadportal.core.errors import Forbidden, Unauthorized
from leadportal.schemas.auth import Identity

JWT_ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False

def create_access_token(
    subject: str,
    role: str,
    *,
    name: str = "",
    email: str = "",
    affiliate_id: Optional[int] = None,
    expires_minutes: int | None = None,
) -> str:
    expires = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire_dt = datetime.now(timezone.utc) + timedelta(minutes=expires)
    to_encode = {
        "sub": str(subject),
        "name": name,
        "email": email,
        "role": str(role),
        "affiliate_id": affiliate_id,
        "exp": expire_dt,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)

def verify_token(token: str) -> Identity:
    """Decode a bearer token into the caller identity.

    Pure function of the secret and the token: a bad signature, an expired
    ``exp`` or malformed claims all raise ``Unauthorized``.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token")
    user_id = payload.get("sub")
    if user_id is None:
        raise Unauthorized("Invalid token")
    try:
        return Identity(
            id=int(user_id),
            name=payload.get("name") or "",
            email=payload.get("email") or "",
            role=payload.get("role"),
            affiliate_id=payload.get("affiliate_id"),
        )
    except (ValueError, PydanticValidationError):
        raise Unauthorized("Invalid token")

def authorize(identity: Identity, allowed_roles: Iterable[UserRole]) -> None:
    if identity.role not in set(allowed_roles):
        raise Forbidden("Forbidden: Insufficient permissions")

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthorized("Authorization token is required")
    return verify_token(credentials.credentials)

def require_roles(*roles: UserRole):
    def dependency(user: Identity = Depends(get_current_user)) -> Identity:
        authorize(user, roles)
        return user
    return dependency

require_admin = require_roles(UserRole.COMPANY_ADMIN)
