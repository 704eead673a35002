from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field

# Import para registrar a tabela users no metadata
from barbearia.auth_models import User
from barbearia.auth_security import create_access_token, get_subject
from barbearia.auth_service import authenticate, create_user, get_user_by_id
from barbearia.seed import seed_base
from barbearia.services import QueryError, init_db, insert_rows, parse_query, select_rows, update_rows
from barbearia.settings import ACCESS_TOKEN_EXPIRE_MINUTES, API_KEY, configure_logging

logger = logging.getLogger(__name__)

# Authorization: Bearer <token> (opcional nas tabelas públicas)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token", auto_error=False)

# .single() do cliente
OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"

app = FastAPI(title="Barbearia Pro - backend local", version="1.0.0")


# Startup

@app.on_event("startup")
def startup() -> None:
    # Cria tabelas e seed base (idempotente)
    configure_logging()
    init_db()
    seed_base()


@app.exception_handler(QueryError)
def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


# Schemas auth

class CredentialsIn(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    data: dict[str, Any] = Field(default_factory=dict)


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict[str, Any]


def _user_out(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "email": u.email,
        "created_at": u.created_at.isoformat(),
        "user_metadata": u.user_metadata,
    }


def _session_for(u: User) -> SessionOut:
    token = create_access_token(subject=u.id, extra={"email": u.email})
    return SessionOut(access_token=token, expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60, user=_user_out(u))


# Dependências auth

def require_api_key(request: Request) -> None:
    if request.headers.get("apikey") != API_KEY:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _user_from_token(token: str) -> User:
    # proteção extra: remove espaços / aspas acidentais
    token = token.strip().strip('"').strip("'")

    user_id = get_subject(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido")

    u = get_user_by_id(user_id)
    if not u or not u.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário inválido")
    return u


def get_optional_user(token: str | None = Depends(oauth2_scheme)) -> User | None:
    if not token:
        return None
    return _user_from_token(token)


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")
    return user


# AUTH endpoints

@app.post("/auth/v1/signup", response_model=SessionOut, dependencies=[Depends(require_api_key)])
def signup(payload: CredentialsIn) -> SessionOut:
    try:
        user_id = create_user(payload.email, payload.password, full_name=payload.data.get("full_name"))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _session_for(get_user_by_id(user_id))


@app.post("/auth/v1/token", response_model=SessionOut, dependencies=[Depends(require_api_key)])
def token(payload: CredentialsIn, grant_type: str = "password") -> SessionOut:
    if grant_type != "password":
        raise HTTPException(status_code=400, detail="grant_type não suportado")

    u = authenticate(payload.email, payload.password)
    if not u:
        raise HTTPException(status_code=400, detail="Credenciais inválidas")
    return _session_for(u)


@app.get("/auth/v1/user", dependencies=[Depends(require_api_key)])
def me(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return _user_out(user)


@app.post("/auth/v1/logout", status_code=204, dependencies=[Depends(require_api_key)])
def logout(user: User = Depends(get_current_user)) -> Response:
    # JWT sem estado: o cliente descarta o token
    logger.info("Logout: %s", user.id)
    return Response(status_code=204)


# REST endpoints (PostgREST)

def _single(request: Request, rows: list[dict[str, Any]]) -> Any:
    """Accept object+json: exatamente uma linha, senão PGRST116."""
    if OBJECT_MEDIA_TYPE not in request.headers.get("accept", ""):
        return rows
    if len(rows) != 1:
        raise QueryError(
            "PGRST116",
            "JSON object requested, multiple (or no) rows returned",
            status=406,
            details=f"The result contains {len(rows)} rows",
        )
    return rows[0]


@app.get("/rest/v1/{table}", dependencies=[Depends(require_api_key)])
def rest_select(table: str, request: Request, user: User | None = Depends(get_optional_user)) -> Any:
    query = parse_query(table, list(request.query_params.multi_items()))
    rows = select_rows(query, user_id=user.id if user else None)
    return _single(request, rows)


@app.post("/rest/v1/{table}", status_code=201, dependencies=[Depends(require_api_key)])
def rest_insert(
    table: str,
    request: Request,
    payload: Any = Body(...),
    user: User | None = Depends(get_optional_user),
) -> Any:
    rows = payload if isinstance(payload, list) else [payload]
    created = insert_rows(table, rows, user_id=user.id if user else None)
    return _single(request, created)


@app.patch("/rest/v1/{table}", dependencies=[Depends(require_api_key)])
def rest_update(
    table: str,
    request: Request,
    values: Any = Body(...),
    user: User | None = Depends(get_optional_user),
) -> Any:
    if not isinstance(values, dict):
        raise QueryError("PGRST102", "Update body must be a JSON object")
    query = parse_query(table, list(request.query_params.multi_items()))
    updated = update_rows(table, query.filters, values, user_id=user.id if user else None)
    return _single(request, updated)
