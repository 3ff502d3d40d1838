from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from leadportal.schemas.auth import Identity, LoginIn, TokenOut, UserOut
from leadportal.models.user import User
from leadportal.models.base import utcnow
from leadportal.db.session import get_db
from leadportal.core.security import create_access_token, get_current_user, verify_password
from leadportal.core.audit_log import log_login
from leadportal.core.auth_utils import check_not_found
from leadportal.core.errors import InvalidCredentials

router = APIRouter(prefix="/auth", tags=["auth"])


async def authenticate(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    res = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = res.scalars().first()
    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentials("Invalid credentials")

    user.last_login = utcnow()
    await db.commit()

    token = create_access_token(
        str(user.id),
        user.role,
        name=user.name,
        email=user.email,
        affiliate_id=user.affiliate_id,
    )
    return user, token


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, db: AsyncSession = Depends(get_db)):
    user, token = await authenticate(db, payload.email, payload.password)
    await log_login(db, int(user.id), user.email)
    return TokenOut(token=token)


@router.get("/me", response_model=UserOut)
async def me(db: AsyncSession = Depends(get_db), current_user: Identity = Depends(get_current_user)):
    res = await db.execute(select(User).where(User.id == current_user.id))
    user = res.scalars().first()
    check_not_found(user, "User", current_user.id)
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        affiliate_id=user.affiliate_id,
        created_at=user.created_at,
        last_login=user.last_login,
    )
