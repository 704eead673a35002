from __future__ import annotations

import streamlit as st

from barbearia.booking import STEP_TITLES, TOTAL_STEPS, BookingWizard
from barbearia.dashboard import Dashboard
from barbearia.formatting import format_price
from barbearia.navigation import AUTH, LOADING, AppController
from barbearia.notify import Notifier
from barbearia.rest_client import BackendClient
from barbearia.session import CONFIRMATION_PENDING, SessionContext
from barbearia.settings import API_URL, configure_logging

st.set_page_config(page_title="Barbearia Pro", page_icon="✂️", layout="centered")


# Estado por sessão do navegador

def get_app() -> AppController:
    if "app" not in st.session_state:
        configure_logging()
        client = BackendClient()
        session = SessionContext(client)
        app = AppController(client, session, Notifier())
        session.start()
        st.session_state["app"] = app
    return st.session_state["app"]


def show_notices(app: AppController) -> None:
    for n in app.notifier.drain():
        icon = {"success": "✅", "error": "❌", "warning": "⚠️"}.get(n.kind, "ℹ️")
        st.toast(f"**{n.title}**\n\n{n.description}", icon=icon)


# Autenticação

def render_auth(app: AppController) -> None:
    st.title("Barbearia Pro")
    tab_login, tab_signup = st.tabs(["Entrar", "Criar conta"])

    with tab_login:
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Senha", type="password", key="login_pass")
        if st.button("Entrar", key="login_btn", type="primary"):
            err = app.session.sign_in(email, password)
            if err:
                st.error("Credenciais inválidas." if err.status == 400 else err.message)
            else:
                st.rerun()

    with tab_signup:
        name = st.text_input("Nome completo", key="signup_name")
        email = st.text_input("Email", key="signup_email")
        password = st.text_input("Senha", type="password", key="signup_pass")
        if st.button("Criar conta", key="signup_btn"):
            err = app.session.sign_up(email, password, full_name=name)
            if err and err.code == CONFIRMATION_PENDING:
                st.info(err.message)
            elif err:
                st.error(err.message)
            else:
                st.rerun()


# Navegação

def render_navigation(app: AppController) -> None:
    nav = app.navigation
    with st.sidebar:
        st.header("Barbearia Pro")
        for item in nav.items:
            if st.button(
                item.label,
                key=f"nav_{item.id}",
                type="primary" if nav.is_active(item.id) else "secondary",
                use_container_width=True,
            ):
                nav.select(item.id)
                st.rerun()

        st.divider()
        if app.session.user:
            st.caption(app.session.user.email)
        if st.button("Sair", key="logout_btn"):
            app.session.sign_out()
            st.rerun()
        st.caption(f"API: {API_URL}")


# Dashboard

def render_dashboard(dash: Dashboard) -> None:
    st.title(dash.greeting())
    st.caption("Que bom ter você de volta")

    with st.container(border=True):
        st.subheader("Próximo Agendamento")
        card = dash.appointment_card()
        if dash.next_appointment.is_error:
            st.info("Não foi possível carregar seus agendamentos agora.")
        elif card is None:
            st.info("Você não tem agendamentos futuros.")
        else:
            st.caption(card["status"])
            c1, c2 = st.columns(2)
            c1.write(f"📅 {card['when']}")
            c2.write(f"👤 {card['barber']}")
            c1.write(f"✂️ {card['service']}")
            c2.write(f"📍 {card['unit']}")
            b1, b2 = st.columns(2)
            if b1.button("Remarcar", key="dash_reschedule", use_container_width=True):
                dash.reschedule()
                st.rerun()
            if b2.button("Cancelar", key="dash_cancel", use_container_width=True, disabled=dash.cancelling):
                dash.cancel()
                st.rerun()

    q1, q2 = st.columns(2)
    if q1.button("➕ Novo Agendamento", key="dash_new", type="primary", use_container_width=True):
        dash.new_booking()
        st.rerun()
    if q2.button("🕒 Histórico", key="dash_history", use_container_width=True):
        dash.open_history()
        st.rerun()

    with st.container(border=True):
        st.subheader("Promoções")
        st.caption("Aproveite nossas ofertas especiais")
        for promo in dash.promotions:
            st.write(f"**{promo.title}** ({promo.discount})  \n{promo.description}")


# Agendamento

def render_booking(wiz: BookingWizard) -> None:
    top1, top2 = st.columns([1, 3])
    if top1.button("← Voltar", key="wiz_back"):
        wiz.back()
        st.rerun()
    top2.subheader("Novo Agendamento" if not wiz.reschedule_of else "Remarcar Agendamento")

    st.caption(f"Etapa {wiz.step} de {TOTAL_STEPS} · {round(wiz.progress())}%")
    st.progress(int(wiz.progress()))

    with st.container(border=True):
        st.subheader(STEP_TITLES[wiz.step])

        if wiz.step == 1:
            for unit in wiz.units.data:
                label = f"{unit['name']}  \n{unit.get('address') or ''}"
                if st.button(label, key=f"unit_{unit['id']}", use_container_width=True,
                             type="primary" if wiz.unit_id == unit["id"] else "secondary"):
                    wiz.select_unit(unit["id"])
                    st.rerun()

        elif wiz.step == 2:
            for service in wiz.services.data:
                label = f"{service['name']} · {service['duration_minutes']} min · {format_price(service['price'])}"
                if st.button(label, key=f"service_{service['id']}", use_container_width=True,
                             type="primary" if wiz.service_id == service["id"] else "secondary"):
                    wiz.select_service(service["id"])
                    st.rerun()

        elif wiz.step == 3:
            if not wiz.barbers.data:
                st.info("Nenhum barbeiro disponível nesta unidade.")
            for barber in wiz.barbers.data:
                label = f"{barber['name']}  \n{barber.get('specialty') or ''} · ⭐ {barber.get('rating') or '5.0'}"
                if st.button(label, key=f"barber_{barber['id']}", use_container_width=True,
                             type="primary" if wiz.barber_id == barber["id"] else "secondary"):
                    wiz.select_barber(barber["id"])
                    st.rerun()

        elif wiz.step == 4:
            dates = wiz.available_dates()
            if not dates:
                st.info("Sem horários disponíveis para este barbeiro.")
            st.write("**Data**")
            cols = st.columns(3)
            for i, d in enumerate(dates):
                label = f"{d.day}  \n{d.label}  \n{d.slots} vagas"
                if cols[i % 3].button(label, key=f"date_{d.date}", use_container_width=True,
                                      type="primary" if wiz.date == d.date else "secondary"):
                    wiz.select_date(d.date)
                    st.rerun()

            if wiz.date:
                st.write("**Horário**")
                cols = st.columns(4)
                for i, t in enumerate(wiz.available_times(wiz.date)):
                    if cols[i % 4].button(t, key=f"time_{t}", use_container_width=True,
                                          type="primary" if wiz.time == t else "secondary"):
                        wiz.select_time(t)
                        st.rerun()

        else:
            st.caption("Revise os detalhes do seu agendamento")
            for label, value in wiz.summary():
                if label == "Total":
                    st.divider()
                    st.markdown(f"### {label}: {value}")
                else:
                    st.write(f"{label}: **{value}**")

    b1, b2 = st.columns(2)
    if b1.button("← Anterior", key="wiz_prev", disabled=not wiz.can_go_back()):
        wiz.previous()
        st.rerun()
    if wiz.step < TOTAL_STEPS:
        if b2.button("Próximo →", key="wiz_next", type="primary", disabled=not wiz.can_proceed()):
            wiz.next()
            st.rerun()
    else:
        if b2.button("Confirmar Agendamento", key="wiz_confirm", type="primary", disabled=wiz.submitting):
            wiz.confirm()
            st.rerun()


# UI

app = get_app()
app.refresh_session()
show_notices(app)

view = app.view()

if view == LOADING:
    st.info("Carregando...")
    st.stop()

if view == AUTH:
    render_auth(app)
    st.stop()

if app.show_navigation():
    render_navigation(app)

if view == "dashboard":
    render_dashboard(app.dashboard)

elif view == "booking" and app.wizard is not None:
    render_booking(app.wizard)

elif view == "history":
    st.title("Histórico de Atendimentos")
    st.write("Esta página será implementada em breve.")

elif view == "profile":
    st.title("Meu Perfil")
    st.write("Esta página será implementada em breve.")
