"""
Fluxo de agendamento em cinco etapas.

1. unidade  2. serviço  3. barbeiro  4. data e horário  5. confirmação

Cada etapa só avança quando o(s) campo(s) dela estão preenchidos. As listas
vêm do backend e ficam em Loadable (idle/loading/success/error); falhas de
leitura vão para o log e deixam a lista vazia, sem bloquear a navegação.
O estado local só muda depois da resposta positiva do backend.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from barbearia.formatting import format_date_br, format_price, weekday_pt
from barbearia.notify import Notifier
from barbearia.rest_client import BackendClient, QueryBuilder
from barbearia.results import Loadable
from barbearia.session import SessionContext

logger = logging.getLogger(__name__)

TOTAL_STEPS = 5

STEP_TITLES = {
    1: "Escolha a unidade",
    2: "Escolha o serviço",
    3: "Escolha o barbeiro",
    4: "Escolha data e horário",
    5: "Confirmar agendamento",
}


@dataclass(frozen=True)
class AvailableDate:
    date: str   # ISO
    day: str    # dia da semana
    label: str  # dd/mm/yyyy
    slots: int


class BookingWizard:
    def __init__(
        self,
        client: BackendClient,
        session: SessionContext,
        notifier: Notifier,
        on_complete: Callable[[], None] | None = None,
        on_back: Callable[[], None] | None = None,
        reschedule_of: str | None = None,
        today: date | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.notifier = notifier
        self.on_complete = on_complete
        self.on_back = on_back
        self.reschedule_of = reschedule_of
        self._today = today

        self.step = 1
        self.unit_id: str | None = None
        self.service_id: str | None = None
        self.barber_id: str | None = None
        self.date: str | None = None
        self.time: str | None = None

        self.units: Loadable[list[dict]] = Loadable.idle([])
        self.services: Loadable[list[dict]] = Loadable.idle([])
        self.barbers: Loadable[list[dict]] = Loadable.idle([])
        self.slots: Loadable[list[dict]] = Loadable.idle([])

        self.submitting = False
        self.completed = False

    @property
    def today(self) -> date:
        return self._today or date.today()

    # =========================
    # Carregamento
    # =========================
    def _fetch(self, what: str, query: QueryBuilder) -> Loadable[list[dict]]:
        res = query.execute()
        if res.error:
            logger.error("Erro ao carregar %s: %s (%s)", what, res.error.message, res.error.code)
            return Loadable.failure(res.error, [])
        return Loadable.success(res.data or [])

    def load(self) -> None:
        """Busca unidades e serviços (independe da etapa)."""
        self.fetch_units()
        self.fetch_services()

    def fetch_units(self) -> None:
        self.units = Loadable.loading([])
        self.units = self._fetch("unidades", self.client.table("units").select("*").order("name"))

    def fetch_services(self) -> None:
        self.services = Loadable.loading([])
        self.services = self._fetch("serviços", self.client.table("services").select("*").order("name"))

    def fetch_barbers(self) -> None:
        self.barbers = Loadable.loading([])
        self.barbers = self._fetch(
            "barbeiros",
            self.client.table("barbers").select("*").eq("unit_id", self.unit_id).order("name"),
        )

    def fetch_slots(self) -> None:
        self.slots = Loadable.loading([])
        self.slots = self._fetch(
            "horários",
            self.client.table("time_slots")
            .select("*")
            .eq("barber_id", self.barber_id)
            .gte("slot_date", self.today)
            .order("slot_date")
            .order("slot_time"),
        )

    # =========================
    # Seleções
    # =========================
    def select_unit(self, unit_id: str) -> None:
        changed = unit_id != self.unit_id
        self.unit_id = unit_id
        if changed:
            self.fetch_barbers()

    def select_service(self, service_id: str) -> None:
        self.service_id = service_id

    def select_barber(self, barber_id: str) -> None:
        changed = barber_id != self.barber_id
        self.barber_id = barber_id
        if changed:
            self.fetch_slots()
            if self.date and self.time not in self.available_times(self.date):
                self.date = None
                self.time = None

    def select_date(self, iso_date: str) -> None:
        self.date = iso_date
        if self.time is not None and self.time not in self.available_times(iso_date):
            self.time = None

    def select_time(self, time: str) -> None:
        self.time = time

    # =========================
    # Disponibilidade
    # =========================
    def available_dates(self) -> list[AvailableDate]:
        counts: dict[str, int] = {}
        for slot in self.slots.data:
            counts[slot["slot_date"]] = counts.get(slot["slot_date"], 0) + 1
        return [
            AvailableDate(date=d, day=weekday_pt(d), label=format_date_br(d), slots=n)
            for d, n in counts.items()
        ]

    def available_times(self, iso_date: str) -> list[str]:
        return [s["slot_time"] for s in self.slots.data if s["slot_date"] == iso_date]

    # =========================
    # Navegação entre etapas
    # =========================
    def can_proceed(self) -> bool:
        if self.step == 1:
            return bool(self.unit_id)
        if self.step == 2:
            return bool(self.service_id)
        if self.step == 3:
            return bool(self.barber_id)
        if self.step == 4:
            return bool(self.date and self.time)
        return self.step == TOTAL_STEPS

    def can_go_back(self) -> bool:
        return self.step > 1

    def next(self) -> bool:
        if not self.can_proceed() or self.step >= TOTAL_STEPS:
            return False
        self.step += 1
        return True

    def previous(self) -> bool:
        if not self.can_go_back():
            return False
        self.step -= 1
        return True

    def progress(self) -> float:
        return self.step / TOTAL_STEPS * 100

    def back(self) -> None:
        if self.on_back:
            self.on_back()

    # =========================
    # Confirmação
    # =========================
    @staticmethod
    def _find(items: list[dict], item_id: str | None) -> dict | None:
        return next((i for i in items if i.get("id") == item_id), None)

    def selected_unit(self) -> dict | None:
        return self._find(self.units.data, self.unit_id)

    def selected_service(self) -> dict | None:
        return self._find(self.services.data, self.service_id)

    def selected_barber(self) -> dict | None:
        return self._find(self.barbers.data, self.barber_id)

    def total_label(self) -> str:
        service = self.selected_service()
        return format_price(service.get("price")) if service else ""

    def summary(self) -> list[tuple[str, str]]:
        def name(item: dict | None) -> str:
            return (item or {}).get("name") or ""

        return [
            ("Unidade", name(self.selected_unit())),
            ("Serviço", name(self.selected_service())),
            ("Barbeiro", name(self.selected_barber())),
            ("Data", format_date_br(self.date)),
            ("Horário", self.time or ""),
            ("Total", self.total_label()),
        ]

    def appointment_row(self, user_id: str) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "unit_id": self.unit_id,
            "service_id": self.service_id,
            "barber_id": self.barber_id,
            "appointment_date": self.date,
            "appointment_time": self.time,
            "status": "scheduled",
        }

    def confirm(self) -> bool:
        """
        Grava o agendamento (um único insert). Sucesso: aviso + on_complete.
        Falha: aviso de erro, estado do fluxo intacto.
        """
        if self.step != TOTAL_STEPS or self.submitting or self.completed:
            return False
        user = self.session.user
        if user is None:
            return False

        self.submitting = True
        try:
            res = self.client.table("appointments").insert(self.appointment_row(user.id)).execute()
        finally:
            self.submitting = False

        if res.error:
            logger.error("Erro ao confirmar agendamento: %s (%s)", res.error.message, res.error.code)
            self.notifier.error(
                "Erro no agendamento",
                "Não foi possível confirmar seu agendamento. Tente novamente.",
            )
            return False

        if self.reschedule_of:
            self._cancel_rescheduled()

        self.completed = True
        self.notifier.success("Agendamento confirmado!", "Seu horário foi reservado com sucesso.")
        if self.on_complete:
            self.on_complete()
        return True

    def _cancel_rescheduled(self) -> None:
        """Remarcação: cancela o agendamento antigo só depois do novo gravado."""
        res = (
            self.client.table("appointments")
            .update({"status": "cancelled"})
            .eq("id", self.reschedule_of)
            .execute()
        )
        if res.error or not res.data:
            reason = res.error.message if res.error else "nenhuma linha atualizada"
            logger.error("Erro ao cancelar agendamento remarcado %s: %s", self.reschedule_of, reason)
            self.notifier.warning(
                "Agendamento anterior mantido",
                "O novo horário foi reservado, mas não conseguimos cancelar o anterior.",
            )
