from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from jose import jwt
from jose.exceptions import JOSEError

from barbearia.rest_client import ApiError, ApiResponse, BackendClient

logger = logging.getLogger(__name__)

# Eventos entregues aos listeners
INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

# sign_up/sign_in aceitos sem sessão (confirmação de email pendente)
CONFIRMATION_PENDING = "confirmation_pending"

Listener = Callable[[str, "AuthUser | None"], None]


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


def token_claims(token: str) -> dict[str, Any]:
    """Claims do JWT sem verificar assinatura (só para a UI)."""
    try:
        return jwt.get_unverified_claims(token)
    except JOSEError:
        return {}


def token_is_expired(token: str, leeway: int = 5) -> bool:
    exp = token_claims(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return False

    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp_int - leeway)


class SessionContext:
    """
    Sessão de autenticação passada explicitamente aos componentes.

    Ciclo de vida:
    - criada no início do processo com loading=True
    - start(): restaura um token salvo (se houver) e encerra o loading
    - sign_in / sign_up / refresh: atualizam credenciais
    - sign_out: descarta token e usuário
    """

    def __init__(self, client: BackendClient) -> None:
        self.client = client
        self.user: AuthUser | None = None
        self.access_token: str | None = None
        self.loading = True
        self._listeners: list[Listener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self.user)

    def _set_token(self, token: str | None) -> None:
        self.access_token = token
        self.client.set_access_token(token)

    def _load_user(self) -> ApiError | None:
        res = self.client.get_user()
        if res.error:
            return res.error
        self.user = AuthUser(id=res.data["id"], email=res.data.get("email", ""))
        return None

    def _clear(self) -> None:
        self._set_token(None)
        self.user = None

    def start(self, stored_token: str | None = None) -> None:
        self.loading = True
        if stored_token and not token_is_expired(stored_token):
            self._set_token(stored_token)
            err = self._load_user()
            if err:
                logger.info("Token salvo recusado: %s", err.message)
                self._clear()
        self.loading = False
        self._emit(INITIAL_SESSION)

    def _apply_session(self, res: ApiResponse) -> ApiError | None:
        if res.error:
            return res.error
        data = res.data if isinstance(res.data, dict) else {}
        user = data.get("user") or {}
        token = data.get("access_token")
        if not token or not user.get("id"):
            # cadastro aceito, mas a sessão só vem depois da confirmação por email
            logger.info("Resposta de autenticação sem sessão (%s)", data.get("email") or "?")
            return ApiError(
                code=CONFIRMATION_PENDING,
                message="Cadastro recebido. Confirme seu email para entrar.",
            )
        self._set_token(token)
        self.user = AuthUser(id=user["id"], email=user.get("email", ""))
        logger.info("Sessão iniciada para %s", self.user.id)
        self._emit(SIGNED_IN)
        return None

    def sign_in(self, email: str, password: str) -> ApiError | None:
        return self._apply_session(self.client.sign_in_with_password(email.strip().lower(), password))

    def sign_up(self, email: str, password: str, full_name: str | None = None) -> ApiError | None:
        return self._apply_session(self.client.sign_up(email.strip().lower(), password, full_name))

    def refresh(self) -> None:
        """Revalida o token atual (expirado ou recusado -> logout)."""
        if not self.access_token:
            return
        if token_is_expired(self.access_token):
            logger.info("Sessão expirada")
            self._clear()
            self._emit(SIGNED_OUT)
            return
        err = self._load_user()
        if err and err.status in (401, 403):
            logger.info("Sessão inválida: %s", err.message)
            self._clear()
            self._emit(SIGNED_OUT)
            return
        if err:
            # backend fora do ar: mantém a sessão local
            logger.warning("Não foi possível revalidar a sessão: %s", err.message)
            return
        self._emit(TOKEN_REFRESHED)

    def sign_out(self) -> None:
        if self.access_token:
            res = self.client.sign_out()
            if res.error:
                # logout local acontece de qualquer forma
                logger.warning("Logout remoto falhou: %s", res.error.message)
        self._clear()
        self._emit(SIGNED_OUT)
