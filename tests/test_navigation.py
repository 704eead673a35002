from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from barbearia.auth_security import create_access_token
from barbearia.navigation import AUTH, LOADING, AppController, Navigation
from barbearia.session import SessionContext

from conftest import PASSWORD, TODAY


def test_navigation_select_closes_menu():
    pages = []
    nav = Navigation(on_page_change=pages.append)
    assert [i.label for i in nav.items] == ["Início", "Agendar", "Histórico", "Perfil"]

    nav.toggle_menu()
    assert nav.menu_open
    nav.select("history")
    assert pages == ["history"]
    assert not nav.menu_open
    nav.toggle_menu()
    nav.toggle_menu()
    assert not nav.menu_open


def test_gate_loading_auth_dashboard(client):
    session = SessionContext(client)
    app = AppController(client, session, today=TODAY)
    assert app.view() == LOADING
    assert not app.show_navigation()

    session.start()
    assert app.view() == AUTH

    session.sign_up("joao@example.com", PASSWORD, full_name="João")
    assert app.view() == "dashboard"
    assert app.show_navigation()
    assert app.dashboard.greeting() == "Olá, João!"


def test_booking_page_hides_navigation_and_returns_on_complete(client, user_session):
    app = AppController(client, user_session, today=TODAY)
    dash = app.dashboard
    assert dash.next_appointment.data is None

    app.navigation.select("booking")
    assert app.view() == "booking"
    assert not app.show_navigation()
    wiz = app.wizard
    assert [u["name"] for u in wiz.units.data] == ["Unidade Centro", "Unidade Shopping"]

    wiz.select_unit(wiz.units.data[0]["id"])
    wiz.next()
    wiz.select_service(wiz.services.data[0]["id"])
    wiz.next()
    wiz.select_barber(wiz.barbers.data[0]["id"])
    wiz.next()
    wiz.select_date("2024-01-15")
    wiz.select_time("09:00")
    wiz.next()
    assert wiz.confirm()

    assert app.view() == "dashboard"
    assert app.wizard is None
    # dashboard recarregado após o agendamento
    assert app.dashboard.appointment_card()["when"] == "15 Jan, 09:00"
    assert [n.title for n in app.notifier.drain()] == ["Agendamento confirmado!"]


def test_booking_back_returns_to_dashboard(client, user_session):
    app = AppController(client, user_session, today=TODAY)
    app.change_page("booking")
    app.wizard.back()
    assert app.view() == "dashboard"
    assert app.wizard is None


def test_reschedule_opens_linked_wizard(client, user_session):
    app = AppController(client, user_session, today=TODAY)
    app.change_page("booking", reschedule_of="abc")
    assert app.wizard.reschedule_of == "abc"
    app.change_page("booking")
    assert app.wizard.reschedule_of is None


def test_sign_out_resets_to_auth(client, user_session):
    app = AppController(client, user_session, today=TODAY)
    app.change_page("profile")
    app.navigation.toggle_menu()

    user_session.sign_out()
    assert app.view() == AUTH
    assert app.page == "dashboard"
    assert not app.navigation.menu_open


def test_change_page_rejects_unknown(client, user_session):
    app = AppController(client, user_session, today=TODAY)
    with pytest.raises(ValueError):
        app.change_page("settings")


def test_expired_token_sends_user_back_to_login(client, user_session):
    app = AppController(client, user_session, today=TODAY)
    app.refresh_session()
    assert app.view() == "dashboard"

    past = int((datetime.now(timezone.utc) - timedelta(minutes=1)).timestamp())
    expired = create_access_token(user_session.user.id, extra={"exp": past})
    user_session.access_token = expired
    client.set_access_token(expired)

    app.refresh_session()
    assert app.view() == AUTH
    assert client.access_token is None
