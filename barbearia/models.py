from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, Float, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class AppointmentStatus(enum.Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    address: Mapped[str | None] = mapped_column(String(200), nullable=True)

    barbers: Mapped[list["Barber"]] = relationship(back_populates="unit", cascade="all, delete-orphan")
    appointments: Mapped[list["Appointment"]] = relationship(back_populates="unit")

    def __repr__(self) -> str:
        return f"Unit({self.name})"


class Service(Base):
    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    appointments: Mapped[list["Appointment"]] = relationship(back_populates="service")


class Barber(Base):
    __tablename__ = "barbers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    specialty: Mapped[str | None] = mapped_column(String(120), nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit_id: Mapped[str] = mapped_column(ForeignKey("units.id"), nullable=False)

    unit: Mapped["Unit"] = relationship(back_populates="barbers")
    time_slots: Mapped[list["TimeSlot"]] = relationship(back_populates="barber", cascade="all, delete-orphan")
    appointments: Mapped[list["Appointment"]] = relationship(back_populates="barber")

    def __repr__(self) -> str:
        return f"Barber({self.name}, {self.specialty})"


class TimeSlot(Base):
    """Horário ofertado por um barbeiro (substitui a lista fixa de datas/horários)."""
    __tablename__ = "time_slots"
    __table_args__ = (UniqueConstraint("barber_id", "slot_date", "slot_time", name="uq_slot_barbeiro_horario"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    barber_id: Mapped[str] = mapped_column(ForeignKey("barbers.id"), nullable=False)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM

    barber: Mapped["Barber"] = relationship(back_populates="time_slots")


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # um único agendamento ativo por barbeiro/data/horário
        Index(
            "uq_appointment_barber_slot",
            "barber_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            sqlite_where=text("status = 'scheduled'"),
            postgresql_where=text("status = 'scheduled'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    unit_id: Mapped[str] = mapped_column(ForeignKey("units.id"), nullable=False)
    service_id: Mapped[str] = mapped_column(ForeignKey("services.id"), nullable=False)
    barber_id: Mapped[str] = mapped_column(ForeignKey("barbers.id"), nullable=False)

    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM

    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    unit: Mapped["Unit"] = relationship(back_populates="appointments")
    service: Mapped["Service"] = relationship(back_populates="appointments")
    barber: Mapped["Barber"] = relationship(back_populates="appointments")
