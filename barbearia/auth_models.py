from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from barbearia.db import Base
from barbearia.models import Profile, new_uuid


class User(Base):
    """
    Conta do serviço de autenticação (equivalente ao auth.users hospedado).
    O perfil público (nome, telefone) fica em profiles, 1:1 pelo user_id.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # carregado junto: o usuário sai da sessão antes de virar JSON
    profile: Mapped[Profile | None] = relationship(lazy="joined", cascade="all, delete-orphan")

    @property
    def user_metadata(self) -> dict[str, str | None]:
        return {"full_name": self.profile.full_name if self.profile else None}
