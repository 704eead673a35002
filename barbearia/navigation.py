from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

from barbearia.booking import BookingWizard
from barbearia.dashboard import Dashboard
from barbearia.notify import Notifier
from barbearia.rest_client import BackendClient
from barbearia.session import SIGNED_IN, SIGNED_OUT, AuthUser, SessionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavItem:
    id: str
    label: str


NAV_ITEMS = [
    NavItem("dashboard", "Início"),
    NavItem("booking", "Agendar"),
    NavItem("history", "Histórico"),
    NavItem("profile", "Perfil"),
]

PAGES = {item.id for item in NAV_ITEMS}

# views do AppController além das páginas
LOADING = "loading"
AUTH = "auth"


class Navigation:
    """Abas + menu recolhível (telas pequenas)."""

    def __init__(self, current_page: str = "dashboard", on_page_change: Callable[[str], None] | None = None) -> None:
        self.items = NAV_ITEMS
        self.current_page = current_page
        self.menu_open = False
        self.on_page_change = on_page_change

    def is_active(self, page: str) -> bool:
        return self.current_page == page

    def toggle_menu(self) -> None:
        self.menu_open = not self.menu_open

    def select(self, page: str) -> None:
        if self.on_page_change:
            self.on_page_change(page)
        self.menu_open = False


class AppController:
    """
    Controlador raiz:
    - loading enquanto a sessão não resolve
    - auth sem usuário
    - página atual com usuário (dashboard / booking / history / profile)
    """

    def __init__(
        self,
        client: BackendClient,
        session: SessionContext,
        notifier: Notifier | None = None,
        today: date | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.notifier = notifier or Notifier()
        self.today = today

        self.page = "dashboard"
        self.wizard: BookingWizard | None = None
        self._dashboard: Dashboard | None = None
        self.navigation = Navigation(self.page, on_page_change=self.change_page)

        self._unsubscribe = session.subscribe(self._on_auth_change)

    def view(self) -> str:
        if self.session.loading:
            return LOADING
        if self.session.user is None:
            return AUTH
        return self.page

    def refresh_session(self) -> None:
        """Revalida o token a cada rerun; expirado ou recusado volta para a tela de login."""
        if not self.session.loading:
            self.session.refresh()

    def show_navigation(self) -> bool:
        return self.view() in PAGES and self.page != "booking"

    def change_page(self, page: str, reschedule_of: str | None = None) -> None:
        if page not in PAGES:
            raise ValueError(f"Página desconhecida: {page}")

        if page == "booking":
            self.wizard = BookingWizard(
                self.client,
                self.session,
                self.notifier,
                on_complete=self._booking_complete,
                on_back=self._booking_back,
                reschedule_of=reschedule_of,
                today=self.today,
            )
            self.wizard.load()
        else:
            self.wizard = None

        self.page = page
        self.navigation.current_page = page

    @property
    def dashboard(self) -> Dashboard:
        if self._dashboard is None:
            self._dashboard = Dashboard(
                self.client,
                self.session,
                self.notifier,
                on_page_change=self.change_page,
                today=self.today,
            )
        self._dashboard.load()
        return self._dashboard

    def _booking_complete(self) -> None:
        self.change_page("dashboard")
        if self._dashboard is not None:
            self._dashboard.load(force=True)

    def _booking_back(self) -> None:
        self.change_page("dashboard")

    def _on_auth_change(self, event: str, user: AuthUser | None) -> None:
        if event == SIGNED_OUT or event == SIGNED_IN:
            logger.debug("Auth %s: reiniciando telas", event)
            self._dashboard = None
            self.wizard = None
            self.page = "dashboard"
            self.navigation.current_page = "dashboard"
            self.navigation.menu_open = False

    def close(self) -> None:
        self._unsubscribe()
