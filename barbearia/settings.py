from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Cliente (Streamlit) -> backend hospedado (PostgREST/GoTrue compatível)
API_URL = os.getenv("BARBEARIA_API_URL", "http://127.0.0.1:8000").rstrip("/")
API_KEY = os.getenv("BARBEARIA_API_KEY", "local-anon-key")
HTTP_TIMEOUT = float(os.getenv("BARBEARIA_HTTP_TIMEOUT", "10"))

# Backend local (emulação do serviço hospedado)
DB_PATH = Path(__file__).resolve().parents[1] / "barbearia.sqlite"
DATABASE_URL = os.getenv("BARBEARIA_DATABASE_URL", f"sqlite:///{DB_PATH}")

# Em produção: definir via variável de ambiente
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("BARBEARIA_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    """Configura o logging raiz uma única vez (app Streamlit, API, CLI)."""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
