from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from premiads.database import Database
from premiads.models.auth.user import Caller
from premiads.services.auth.security import security_service

# Tokens are issued by the identity provider; tokenUrl only documents the flow
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_database():
    """Database dependency"""
    return Database.get_db()


async def get_current_caller(
    token: Annotated[Optional[str], Depends(oauth2_scheme)]
) -> Optional[Caller]:
    """Caller identity from the bearer token, or None when absent/invalid"""
    return security_service.caller_from_token(token)
