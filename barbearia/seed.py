from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import select

from .db import db_session
from .models import Barber, Service, TimeSlot, Unit

UNITS = [
    ("Unidade Centro", "Rua XV de Novembro, 120 - Centro"),
    ("Unidade Shopping", "Av. das Nações, 900 - Piso L2"),
]

SERVICES = [
    ("Corte", 30, 45),
    ("Barba", 20, 30),
    ("Corte + Barba", 50, 65),
]

BARBERS = [
    ("Carlos Silva", "Cortes clássicos", 4.9, "Unidade Centro"),
    ("Rafael Souza", "Degradê e navalhado", 4.7, "Unidade Centro"),
    ("Bruno Lima", "Barba e bigode", 4.8, "Unidade Shopping"),
]

SLOT_TIMES = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "14:00", "14:30", "15:00", "15:30", "16:00", "16:30", "17:00",
]


def working_days(start: date, count: int) -> list[date]:
    """Próximos 'count' dias úteis (seg-sex) a partir de 'start' (incluso)."""
    days: list[date] = []
    d = start
    while len(days) < count:
        if d.weekday() < 5:
            days.append(d)
        d += timedelta(days=1)
    return days


def seed_base(today: date | None = None, days: int = 5) -> None:
    """
    Popula dados mínimos (idempotente):
    - unidades
    - serviços
    - barbeiros
    - horários dos próximos dias úteis
    """
    today = today or date.today()

    with db_session() as s:
        for nome, endereco in UNITS:
            if s.execute(select(Unit).where(Unit.name == nome)).scalar_one_or_none() is None:
                s.add(Unit(name=nome, address=endereco))

        for nome, duracao, preco in SERVICES:
            if s.execute(select(Service).where(Service.name == nome)).scalar_one_or_none() is None:
                s.add(Service(name=nome, duration_minutes=duracao, price=preco))

        s.flush()

        for nome, especialidade, nota, unidade in BARBERS:
            unit = s.execute(select(Unit).where(Unit.name == unidade)).scalar_one()
            exists = s.execute(
                select(Barber).where(Barber.name == nome, Barber.unit_id == unit.id)
            ).scalar_one_or_none()
            if exists is None:
                s.add(Barber(name=nome, specialty=especialidade, rating=nota, unit_id=unit.id))

        s.flush()

        def add_slot(barber_id: str, dia: date, hora: str) -> None:
            if s.execute(
                select(TimeSlot).where(
                    TimeSlot.barber_id == barber_id, TimeSlot.slot_date == dia, TimeSlot.slot_time == hora
                )
            ).scalar_one_or_none() is None:
                s.add(TimeSlot(barber_id=barber_id, slot_date=dia, slot_time=hora))

        for barber in list(s.scalars(select(Barber))):
            for dia in working_days(today, days):
                for hora in SLOT_TIMES:
                    add_slot(barber.id, dia, hora)
