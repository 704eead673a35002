from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from barbearia.settings import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALG, JWT_SECRET

# aud/role dos tokens de usuário logado no serviço hospedado
AUTHENTICATED = "authenticated"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # hash corrompido/desconhecido no banco: trata como senha errada
        return False


def create_access_token(subject: str, extra: dict[str, Any] | None = None) -> str:
    """
    JWT no formato do serviço hospedado: sub (user id), aud e role
    "authenticated", iat/exp em segundos UTC. `extra` pode sobrescrever (ex.: exp).
    """
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "aud": AUTHENTICATED,
        "role": AUTHENTICATED,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)).timestamp()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def get_subject(token: str) -> str | None:
    """user id de um token válido (assinatura, exp e aud); None se inválido."""
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG], audience=AUTHENTICATED)
    except JWTError:
        return None
    if claims.get("role") != AUTHENTICATED:
        return None
    return claims.get("sub")
