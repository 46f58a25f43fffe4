from jose import jwt
from app.core import config


def decode_access_token(token: str) -> dict:
    """
    Decode a bearer token issued by the identity provider.

    Raises:
        jose.JWTError: If the token is malformed, expired, or badly signed
    """
    return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
