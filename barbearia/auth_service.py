from __future__ import annotations

import logging

from sqlalchemy import select

from barbearia.auth_models import User
from barbearia.auth_security import hash_password, verify_password
from barbearia.db import db_session
from barbearia.models import Profile

logger = logging.getLogger(__name__)


def create_user(email: str, password: str, full_name: str | None = None) -> str:
    """Cria o usuário e o respectivo perfil (mesma transação)."""
    email = email.strip().lower()
    if not email or not password:
        raise ValueError("Email e senha são obrigatórios.")

    with db_session() as s:
        exists = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if exists:
            raise ValueError("Email já cadastrado.")

        u = User(
            email=email,
            password_hash=hash_password(password),
            is_active=True,
            profile=Profile(full_name=(full_name or "").strip() or None),
        )
        s.add(u)
        s.flush()
        logger.info("Usuário criado: %s", u.id)
        return u.id


def authenticate(email: str, password: str) -> User | None:
    email = email.strip().lower()
    with db_session() as s:
        u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not u or not u.is_active:
            return None
        if not verify_password(password, u.password_hash):
            return None
        return u


def get_user_by_id(user_id: str) -> User | None:
    with db_session() as s:
        return s.get(User, user_id)
