from __future__ import annotations

from datetime import date

import pytest
import requests
from sqlalchemy import select

from barbearia.booking import TOTAL_STEPS, BookingWizard
from barbearia.db import db_session
from barbearia.models import Appointment, AppointmentStatus, Barber, Service, TimeSlot, Unit
from barbearia.notify import Notifier
from barbearia.rest_client import BackendClient
from barbearia.results import LoadStatus
from barbearia.session import SessionContext

from conftest import TODAY


def by_name(items: list[dict], name: str) -> dict:
    return next(i for i in items if i["name"] == name)


def make_wizard(client, session, **kwargs) -> tuple[BookingWizard, Notifier, list[str]]:
    notifier = Notifier()
    completed: list[str] = []
    wiz = BookingWizard(client, session, notifier, on_complete=lambda: completed.append("done"), today=TODAY, **kwargs)
    wiz.load()
    return wiz, notifier, completed


def fill_until_confirmation(wiz: BookingWizard, unit="Unidade Centro", service="Corte", barber="Carlos Silva",
                            day="2024-01-15", time="14:30") -> None:
    wiz.select_unit(by_name(wiz.units.data, unit)["id"])
    assert wiz.next()
    wiz.select_service(by_name(wiz.services.data, service)["id"])
    assert wiz.next()
    wiz.select_barber(by_name(wiz.barbers.data, barber)["id"])
    assert wiz.next()
    wiz.select_date(day)
    wiz.select_time(time)
    assert wiz.next()
    assert wiz.step == TOTAL_STEPS


def test_load_fetches_units_and_services_ordered(client, session, http):
    wiz, _, _ = make_wizard(client, session)

    assert wiz.units.status is LoadStatus.SUCCESS
    assert [u["name"] for u in wiz.units.data] == ["Unidade Centro", "Unidade Shopping"]
    assert [s["name"] for s in wiz.services.data] == ["Barba", "Corte", "Corte + Barba"]
    assert wiz.barbers.status is LoadStatus.IDLE

    _, _, params, _ = http.last("GET", "/rest/v1/units")
    assert ("order", "name.asc") in params


def test_next_requires_step_fields(client, session):
    wiz, _, _ = make_wizard(client, session)

    for _ in range(3):
        assert not wiz.can_proceed()
        assert not wiz.next()
    assert wiz.step == 1

    wiz.select_unit(by_name(wiz.units.data, "Unidade Centro")["id"])
    assert wiz.can_proceed()
    assert wiz.next()

    assert not wiz.can_proceed()
    wiz.select_service(by_name(wiz.services.data, "Barba")["id"])
    assert wiz.next()

    assert not wiz.can_proceed()
    wiz.select_barber(by_name(wiz.barbers.data, "Rafael Souza")["id"])
    assert wiz.next()

    assert wiz.step == 4
    wiz.select_date("2024-01-16")
    assert not wiz.can_proceed()
    wiz.select_time("10:00")
    assert wiz.can_proceed()
    assert wiz.next()

    assert wiz.step == 5
    assert wiz.can_proceed()
    assert not wiz.next()
    assert wiz.step == 5


def test_previous_never_goes_below_one(client, session):
    wiz, _, _ = make_wizard(client, session)
    assert not wiz.can_go_back()
    for _ in range(4):
        assert not wiz.previous()
    assert wiz.step == 1

    wiz.select_unit(by_name(wiz.units.data, "Unidade Centro")["id"])
    wiz.next()
    assert wiz.can_go_back()
    assert wiz.previous()
    assert wiz.step == 1
    assert not wiz.can_go_back()


def test_progress_follows_step(client, session):
    wiz, _, _ = make_wizard(client, session)
    assert wiz.progress() == 20
    fill_until_confirmation(wiz)
    assert wiz.progress() == 100


def test_select_unit_refetches_barbers_once_per_change(client, session, http):
    wiz, _, _ = make_wizard(client, session)
    centro = by_name(wiz.units.data, "Unidade Centro")["id"]
    shopping = by_name(wiz.units.data, "Unidade Shopping")["id"]

    wiz.select_unit(centro)
    assert http.count("GET", "/rest/v1/barbers") == 1
    _, _, params, _ = http.last("GET", "/rest/v1/barbers")
    assert ("unit_id", f"eq.{centro}") in params
    assert ("order", "name.asc") in params
    assert [b["name"] for b in wiz.barbers.data] == ["Carlos Silva", "Rafael Souza"]

    # mesma unidade: nada muda
    wiz.select_unit(centro)
    assert http.count("GET", "/rest/v1/barbers") == 1

    wiz.select_unit(shopping)
    assert http.count("GET", "/rest/v1/barbers") == 2
    assert [b["name"] for b in wiz.barbers.data] == ["Bruno Lima"]


def test_changing_unit_keeps_previous_barber(client, session):
    wiz, _, _ = make_wizard(client, session)
    wiz.select_unit(by_name(wiz.units.data, "Unidade Centro")["id"])
    carlos = by_name(wiz.barbers.data, "Carlos Silva")["id"]
    wiz.select_barber(carlos)

    wiz.select_unit(by_name(wiz.units.data, "Unidade Shopping")["id"])
    assert wiz.barber_id == carlos
    # fora da lista atual: não aparece no resumo
    assert wiz.selected_barber() is None


def test_availability_comes_from_time_slots(client, session, http):
    wiz, _, _ = make_wizard(client, session)
    wiz.select_unit(by_name(wiz.units.data, "Unidade Centro")["id"])
    wiz.select_barber(by_name(wiz.barbers.data, "Carlos Silva")["id"])

    _, _, params, _ = http.last("GET", "/rest/v1/time_slots")
    assert ("slot_date", "gte.2024-01-15") in params
    assert ("order", "slot_date.asc,slot_time.asc") in params

    dates = wiz.available_dates()
    assert [d.date for d in dates] == ["2024-01-15", "2024-01-16", "2024-01-17", "2024-01-18", "2024-01-19"]
    assert dates[0].day == "Segunda"
    assert dates[0].label == "15/01/2024"
    assert dates[0].slots == 13
    assert wiz.available_times("2024-01-15")[:3] == ["09:00", "09:30", "10:00"]


def test_select_date_drops_time_not_offered(client, session):
    with db_session() as s:
        carlos = s.execute(select(Barber).where(Barber.name == "Carlos Silva")).scalar_one()
        s.add(TimeSlot(barber_id=carlos.id, slot_date=date(2024, 1, 22), slot_time="19:00"))

    wiz, _, _ = make_wizard(client, session)
    wiz.select_unit(by_name(wiz.units.data, "Unidade Centro")["id"])
    wiz.select_barber(by_name(wiz.barbers.data, "Carlos Silva")["id"])

    wiz.select_date("2024-01-22")
    wiz.select_time("19:00")
    wiz.select_date("2024-01-15")
    assert wiz.time is None


def test_confirm_inserts_scheduled_appointment_once(client, user_session, http):
    wiz, notifier, completed = make_wizard(client, user_session)
    fill_until_confirmation(wiz)

    assert wiz.confirm()

    assert http.count("POST", "/rest/v1/appointments") == 1
    _, _, _, body = http.last("POST", "/rest/v1/appointments")
    assert body["status"] == "scheduled"
    assert body["user_id"] == user_session.user.id
    assert body["appointment_date"] == "2024-01-15"
    assert body["appointment_time"] == "14:30"

    assert completed == ["done"]
    notices = notifier.drain()
    assert [n.kind for n in notices] == ["success"]
    assert notices[0].title == "Agendamento confirmado!"

    # segunda confirmação não grava nem sinaliza de novo
    assert not wiz.confirm()
    assert http.count("POST", "/rest/v1/appointments") == 1
    assert completed == ["done"]


def test_confirm_example_scenario(client, user_session, http):
    with db_session() as s:
        s.add(Unit(id="Unit A", name="Unit A", address="Rua A, 1"))
        s.add(Service(id="Cut", name="Cut", duration_minutes=30, price=45))
        s.flush()
        s.add(Barber(id="Carlos", name="Carlos", specialty="Cortes", rating=5.0, unit_id="Unit A"))
        s.flush()
        s.add(TimeSlot(barber_id="Carlos", slot_date=date(2024, 1, 15), slot_time="14:30"))

    wiz, _, completed = make_wizard(client, user_session)
    wiz.select_unit("Unit A")
    wiz.next()
    wiz.select_service("Cut")
    wiz.next()
    wiz.select_barber("Carlos")
    wiz.next()
    wiz.select_date("2024-01-15")
    wiz.select_time("14:30")
    wiz.next()

    assert wiz.total_label() == "R$ 45"
    assert dict(wiz.summary()) == {
        "Unidade": "Unit A",
        "Serviço": "Cut",
        "Barbeiro": "Carlos",
        "Data": "15/01/2024",
        "Horário": "14:30",
        "Total": "R$ 45",
    }

    assert wiz.confirm()
    _, _, _, body = http.last("POST", "/rest/v1/appointments")
    assert {k: v for k, v in body.items() if k != "user_id"} == {
        "unit_id": "Unit A",
        "service_id": "Cut",
        "barber_id": "Carlos",
        "appointment_date": "2024-01-15",
        "appointment_time": "14:30",
        "status": "scheduled",
    }

    with db_session() as s:
        row = s.execute(select(Appointment).where(Appointment.barber_id == "Carlos")).scalar_one()
        assert row.status is AppointmentStatus.SCHEDULED
        assert row.appointment_date == date(2024, 1, 15)
    assert completed == ["done"]


def test_confirm_without_user_does_nothing(client, session, http):
    wiz, notifier, completed = make_wizard(client, session)
    fill_until_confirmation(wiz)

    assert not wiz.confirm()
    assert http.count("POST", "/rest/v1/appointments") == 0
    assert completed == []
    assert notifier.drain() == []


def test_confirm_only_at_last_step(client, user_session, http):
    wiz, _, _ = make_wizard(client, user_session)
    assert not wiz.confirm()
    assert http.count("POST", "/rest/v1/appointments") == 0


def test_confirm_failure_keeps_state_and_notifies(client, user_session, http):
    # dois fluxos abertos com o mesmo horário: o primeiro a confirmar leva
    wiz, notifier, completed = make_wizard(client, user_session)
    fill_until_confirmation(wiz)

    first, _, _ = make_wizard(client, user_session)
    fill_until_confirmation(first)
    assert first.confirm()

    before = (wiz.step, wiz.unit_id, wiz.service_id, wiz.barber_id, wiz.date, wiz.time)

    assert not wiz.confirm()

    assert completed == []
    notices = notifier.drain()
    assert [n.kind for n in notices] == ["error"]
    assert notices[0].title == "Erro no agendamento"
    assert (wiz.step, wiz.unit_id, wiz.service_id, wiz.barber_id, wiz.date, wiz.time) == before
    assert not wiz.submitting


def test_read_failure_leaves_empty_list():
    class Down:
        def request(self, *args, **kwargs):
            raise requests.ConnectionError("backend fora do ar")

    client = BackendClient(url="http://testserver", api_key="x", http=Down())
    session = SessionContext(client)
    wiz = BookingWizard(client, session, Notifier(), today=TODAY)
    wiz.load()

    assert wiz.units.is_error
    assert wiz.units.data == []
    assert wiz.services.error.code == "network"
    # navegação continua possível (só depende da seleção)
    wiz.select_unit("qualquer")
    assert wiz.barbers.is_error
    assert wiz.next()


def test_reschedule_cancels_previous_after_new_booking(client, user_session):
    first, _, _ = make_wizard(client, user_session)
    fill_until_confirmation(first)
    first.confirm()
    with db_session() as s:
        old_id = s.execute(select(Appointment.id)).scalar_one()

    wiz, notifier, completed = make_wizard(client, user_session, reschedule_of=old_id)
    fill_until_confirmation(wiz, day="2024-01-17", time="09:00")
    assert wiz.confirm()

    with db_session() as s:
        rows = {a.id: a for a in s.scalars(select(Appointment))}
    assert rows[old_id].status is AppointmentStatus.CANCELLED
    new = [a for a in rows.values() if a.id != old_id]
    assert len(new) == 1 and new[0].status is AppointmentStatus.SCHEDULED
    assert completed == ["done"]
    assert [n.kind for n in notifier.drain()] == ["success"]


def test_reschedule_keeps_new_booking_when_old_cancel_fails(client, user_session):
    # id que não pertence ao usuário: o update não atinge nenhuma linha
    wiz, notifier, completed = make_wizard(client, user_session, reschedule_of="nao-existe")
    fill_until_confirmation(wiz)

    assert wiz.confirm()

    assert completed == ["done"]
    notices = notifier.drain()
    assert [n.kind for n in notices] == ["warning", "success"]
    assert notices[0].title == "Agendamento anterior mantido"
    with db_session() as s:
        rows = list(s.scalars(select(Appointment)))
    assert len(rows) == 1
    assert rows[0].status is AppointmentStatus.SCHEDULED


def test_booked_times_are_not_offered(client, user_session):
    first, _, _ = make_wizard(client, user_session)
    fill_until_confirmation(first, service="Corte + Barba", time="14:00")
    assert first.confirm()

    wiz, _, _ = make_wizard(client, user_session)
    wiz.select_unit(by_name(wiz.units.data, "Unidade Centro")["id"])
    wiz.select_barber(by_name(wiz.barbers.data, "Carlos Silva")["id"])

    # 50 min a partir das 14:00 ocupam 14:00 e 14:30
    times = wiz.available_times("2024-01-15")
    assert "14:00" not in times
    assert "14:30" not in times
    assert "15:00" in times
    assert wiz.available_dates()[0].slots == 11
    assert wiz.available_dates()[1].slots == 13

    # outro barbeiro da unidade continua livre
    wiz.select_barber(by_name(wiz.barbers.data, "Rafael Souza")["id"])
    assert "14:00" in wiz.available_times("2024-01-15")


@pytest.mark.parametrize("step", [1, 2, 3, 4])
def test_can_proceed_false_on_empty_steps(client, session, step):
    wiz, _, _ = make_wizard(client, session)
    wiz.step = step
    assert not wiz.can_proceed()
