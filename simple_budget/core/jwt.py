from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt

from ..config import Settings


def create_access_token(data: Dict[str, Any], settings: Settings) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"iat": int(now.timestamp()), "exp": int(expire.timestamp())})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Decode and verify a token; raises ``JWTError`` (or ``ExpiredSignatureError``)."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
