from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from barbearia.formatting import first_name, short_datetime_label
from barbearia.notify import Notifier
from barbearia.rest_client import NO_ROWS, BackendClient
from barbearia.results import Loadable
from barbearia.session import SessionContext

logger = logging.getLogger(__name__)

NEXT_APPOINTMENT_COLUMNS = "*,units(name),services(name,price),barbers(name)"

STATUS_LABELS = {
    "scheduled": "agendado",
    "cancelled": "cancelado",
    "completed": "concluído",
}


@dataclass(frozen=True)
class Promotion:
    title: str
    description: str
    discount: str


PROMOTIONS = [
    Promotion("Combo Especial", "Corte + Barba por apenas R$ 45", "25% OFF"),
    Promotion("Cliente Fiel", "A cada 5 cortes, o 6º é grátis", "Fidelidade"),
]

PageChange = Callable[..., None]


class Dashboard:
    """Tela inicial: próximo agendamento (cancelar / remarcar) e promoções."""

    def __init__(
        self,
        client: BackendClient,
        session: SessionContext,
        notifier: Notifier,
        on_page_change: PageChange | None = None,
        today: date | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.notifier = notifier
        self.on_page_change = on_page_change
        self._today = today

        self.profile: Loadable[dict | None] = Loadable.idle(None)
        self.next_appointment: Loadable[dict | None] = Loadable.idle(None)
        self.cancelling = False
        self._loaded_for: str | None = None

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def promotions(self) -> list[Promotion]:
        return PROMOTIONS

    # =========================
    # Carregamento
    # =========================
    def load(self, force: bool = False) -> None:
        """Carrega perfil e próximo agendamento quando há usuário (uma vez por usuário)."""
        user = self.session.user
        if user is None:
            return
        if not force and self._loaded_for == user.id:
            return
        self._loaded_for = user.id
        self.fetch_profile()
        self.fetch_next_appointment()

    def fetch_profile(self) -> None:
        user = self.session.user
        if user is None:
            return
        self.profile = Loadable.loading(None)
        res = self.client.table("profiles").select("*").eq("user_id", user.id).single().execute()
        if res.error:
            if res.error.code != NO_ROWS:
                logger.error("Erro ao carregar perfil: %s (%s)", res.error.message, res.error.code)
                self.profile = Loadable.failure(res.error, None)
                return
            self.profile = Loadable.success(None)
            return
        self.profile = Loadable.success(res.data)

    def fetch_next_appointment(self) -> None:
        user = self.session.user
        if user is None:
            return
        self.next_appointment = Loadable.loading(None)
        res = (
            self.client.table("appointments")
            .select(NEXT_APPOINTMENT_COLUMNS)
            .eq("user_id", user.id)
            .eq("status", "scheduled")
            .gte("appointment_date", self.today)
            .order("appointment_date")
            .order("appointment_time")
            .limit(1)
            .single()
            .execute()
        )
        if res.error:
            if res.error.code == NO_ROWS:
                # nenhum agendamento futuro: estado vazio normal
                self.next_appointment = Loadable.success(None)
                return
            logger.error("Erro ao carregar próximo agendamento: %s (%s)", res.error.message, res.error.code)
            self.next_appointment = Loadable.failure(res.error, None)
            return
        self.next_appointment = Loadable.success(res.data)

    # =========================
    # Exibição
    # =========================
    def greeting(self) -> str:
        name = first_name((self.profile.data or {}).get("full_name"))
        return f"Olá, {name}!" if name else "Olá!"

    def has_appointment(self) -> bool:
        return self.next_appointment.data is not None

    def appointment_card(self) -> dict[str, Any] | None:
        appt = self.next_appointment.data
        if appt is None:
            return None

        def embedded(key: str) -> str:
            return (appt.get(key) or {}).get("name") or ""

        return {
            "id": appt["id"],
            "when": short_datetime_label(appt["appointment_date"], appt["appointment_time"]),
            "barber": embedded("barbers"),
            "service": embedded("services"),
            "unit": embedded("units"),
            "status": STATUS_LABELS.get(appt.get("status"), appt.get("status") or ""),
        }

    # =========================
    # Ações
    # =========================
    def cancel(self) -> bool:
        """Cancela o agendamento exibido; em sucesso recarrega o próximo."""
        appt = self.next_appointment.data
        if appt is None or self.cancelling:
            return False

        self.cancelling = True
        try:
            res = (
                self.client.table("appointments")
                .update({"status": "cancelled"})
                .eq("id", appt["id"])
                .execute()
            )
        finally:
            self.cancelling = False

        if res.error or not res.data:
            reason = res.error.message if res.error else "nenhuma linha atualizada"
            logger.error("Erro ao cancelar agendamento %s: %s", appt["id"], reason)
            self.notifier.error("Erro ao cancelar", "Não foi possível cancelar seu agendamento. Tente novamente.")
            return False

        self.notifier.success("Agendamento cancelado", "Seu horário foi liberado.")
        self.fetch_next_appointment()
        return True

    def reschedule(self) -> None:
        """Abre o fluxo de agendamento vinculado ao agendamento atual."""
        appt = self.next_appointment.data
        if self.on_page_change:
            self.on_page_change("booking", reschedule_of=appt["id"] if appt else None)

    def new_booking(self) -> None:
        if self.on_page_change:
            self.on_page_change("booking")

    def open_history(self) -> None:
        if self.on_page_change:
            self.on_page_change("history")
