# signfast/users/utils.py

from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from signfast.core.db import get_async_db
from signfast.core.jwt import verify_token
from signfast.users.repository import UserRepository
from signfast.users.models import User
from signfast.utils.logger import get_logger

logger = get_logger(__name__)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_async_db)
) -> User:
    """
    Async dependency to get the current authenticated user from the JWT token.
    Token issuance lives with the identity provider; only verification happens here.
    """
    payload = verify_token(token)
    email = payload.get("sub")
    if email is None:
        logger.error("Token payload missing 'sub' field")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials."
        )

    repo = UserRepository(db)
    user = await repo.get_user_by_email(email)

    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive."
        )

    return user
