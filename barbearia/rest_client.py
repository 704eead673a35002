"""
Cliente HTTP do backend hospedado (PostgREST + GoTrue).

Uso:

    client = BackendClient()
    res = client.table("barbers").select("*").eq("unit_id", unit_id).order("name").execute()
    if res.error:
        ...

`execute()` nunca levanta exceção para erros do backend: devolve ApiResponse
com `data` ou `error`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

import requests

from barbearia.settings import API_KEY, API_URL, HTTP_TIMEOUT

logger = logging.getLogger(__name__)

# .single() sem linhas (ou com mais de uma)
NO_ROWS = "PGRST116"
NETWORK_ERROR = "network"

OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"


@dataclass(frozen=True)
class ApiError:
    code: str
    message: str
    details: str | None = None
    hint: str | None = None
    status: int | None = None


@dataclass(frozen=True)
class ApiResponse:
    data: Any = None
    error: ApiError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _error_from(r: Any) -> ApiError:
    try:
        body = r.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("detail")
        or r.text
        or f"HTTP {r.status_code}"
    )
    return ApiError(
        code=str(body.get("code") or body.get("error_code") or r.status_code),
        message=str(message),
        details=body.get("details"),
        hint=body.get("hint"),
        status=r.status_code,
    )


def _fmt(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class QueryBuilder:
    """Builder encadeável de uma tabela: select/insert/update + filtros."""

    def __init__(self, client: "BackendClient", table: str) -> None:
        self._client = client
        self._table = table
        self._method = "GET"
        self._columns = "*"
        self._body: Any = None
        self._filters: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._limit: int | None = None
        self._single = False

    def select(self, columns: str = "*") -> "QueryBuilder":
        self._columns = columns
        return self

    def insert(self, values: dict[str, Any] | list[dict[str, Any]]) -> "QueryBuilder":
        self._method = "POST"
        self._body = values
        return self

    def update(self, values: dict[str, Any]) -> "QueryBuilder":
        self._method = "PATCH"
        self._body = values
        return self

    def _filter(self, column: str, op: str, value: Any) -> "QueryBuilder":
        self._filters.append((column, f"{op}.{_fmt(value)}"))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "neq", value)

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "gte", value)

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "lte", value)

    def order(self, column: str, desc: bool = False) -> "QueryBuilder":
        self._order.append(f"{column}.{'desc' if desc else 'asc'}")
        return self

    def limit(self, count: int) -> "QueryBuilder":
        self._limit = count
        return self

    def single(self) -> "QueryBuilder":
        self._single = True
        return self

    def params(self) -> list[tuple[str, str]]:
        out: list[tuple[str, str]] = []
        if self._method == "GET":
            out.append(("select", self._columns))
        out.extend(self._filters)
        if self._order:
            out.append(("order", ",".join(self._order)))
        if self._limit is not None:
            out.append(("limit", str(self._limit)))
        return out

    def execute(self) -> ApiResponse:
        return self._client.request(
            self._method,
            f"/rest/v1/{self._table}",
            params=self.params(),
            json=self._body,
            single=self._single,
        )


class BackendClient:
    """
    SDK mínimo do backend hospedado.
    `http` aceita qualquer objeto com a interface de requests.Session.request
    (nos testes: fastapi.testclient.TestClient).
    """

    def __init__(
        self,
        url: str = API_URL,
        api_key: str = API_KEY,
        http: Any | None = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.http = http or requests.Session()
        self.timeout = timeout
        self.access_token: str | None = None

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(self, name)

    def set_access_token(self, token: str | None) -> None:
        self.access_token = token

    def _headers(self, single: bool = False) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if single:
            headers["Accept"] = OBJECT_MEDIA_TYPE
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        single: bool = False,
    ) -> ApiResponse:
        try:
            r = self.http.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=self._headers(single),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s falhou: %s", method, path, e)
            return ApiResponse(error=ApiError(code=NETWORK_ERROR, message=str(e)))

        if r.status_code >= 400:
            err = _error_from(r)
            logger.debug("%s %s -> %s %s", method, path, err.code, err.message)
            return ApiResponse(error=err)

        if r.status_code == 204 or not r.content:
            return ApiResponse(data=None)

        try:
            return ApiResponse(data=r.json())
        except ValueError:
            return ApiResponse(error=ApiError(code="invalid_json", message=r.text, status=r.status_code))

    # Auth (GoTrue)

    def sign_up(self, email: str, password: str, full_name: str | None = None) -> ApiResponse:
        payload = {"email": email, "password": password, "data": {"full_name": full_name} if full_name else {}}
        return self.request("POST", "/auth/v1/signup", json=payload)

    def sign_in_with_password(self, email: str, password: str) -> ApiResponse:
        return self.request(
            "POST",
            "/auth/v1/token",
            params=[("grant_type", "password")],
            json={"email": email, "password": password},
        )

    def get_user(self) -> ApiResponse:
        return self.request("GET", "/auth/v1/user")

    def sign_out(self) -> ApiResponse:
        return self.request("POST", "/auth/v1/logout")
