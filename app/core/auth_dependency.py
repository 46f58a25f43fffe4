from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from app.core.security import decode_access_token
from app.db.session import SessionLocal

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity handed to billing operations by the auth provider."""
    user_id: str
    email: Optional[str] = None


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(token: str = Depends(oauth2_scheme)) -> AuthenticatedUser:
    """Get the authenticated user id and email from the JWT token."""
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")

        if user_id is None:
            raise HTTPException(status_code=401, detail="Invalid token")

        return AuthenticatedUser(user_id=str(user_id), email=payload.get("email"))

    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
