from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from barbearia.rest_client import ApiError

T = TypeVar("T")


class LoadStatus(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Loadable(Generic[T]):
    """
    Estado de uma leitura do backend, exposto para a UI:
    idle -> loading -> success | error.
    Em erro, `data` fica com o valor vazio (lista vazia / None).
    """

    status: LoadStatus
    data: T
    error: ApiError | None = None

    @classmethod
    def idle(cls, empty: Any = None) -> "Loadable":
        return cls(LoadStatus.IDLE, empty)

    @classmethod
    def loading(cls, empty: Any = None) -> "Loadable":
        return cls(LoadStatus.LOADING, empty)

    @classmethod
    def success(cls, data: Any) -> "Loadable":
        return cls(LoadStatus.SUCCESS, data)

    @classmethod
    def failure(cls, error: ApiError, empty: Any = None) -> "Loadable":
        return cls(LoadStatus.ERROR, empty, error)

    @property
    def is_loading(self) -> bool:
        return self.status is LoadStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is LoadStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is LoadStatus.ERROR
