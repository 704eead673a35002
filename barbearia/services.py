from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import and_, inspect as sa_inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import RelationshipDirection, Session

from .db import Base, db_session, engine
from .models import Appointment, AppointmentStatus, Barber, Profile, Service, TimeSlot, Unit

logger = logging.getLogger(__name__)


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Cria as tabelas se não existirem (inclui users)."""
    from . import auth_models  # noqa: F401  registra a tabela users no metadata

    Base.metadata.create_all(bind=engine)


# =========================
# Registro de tabelas e regras de acesso
# =========================
TABLES: dict[str, type[Base]] = {
    "units": Unit,
    "services": Service,
    "barbers": Barber,
    "time_slots": TimeSlot,
    "profiles": Profile,
    "appointments": Appointment,
}

# leitura livre (catálogo)
PUBLIC_TABLES = {"units", "services", "barbers", "time_slots"}

# linhas pertencem ao usuário do token (coluna dona)
OWNED_TABLES = {"profiles": "user_id", "appointments": "user_id"}

INSERTABLE_TABLES = {"appointments"}

UPDATABLE_COLUMNS = {
    "appointments": {"status"},
    "profiles": {"full_name", "phone"},
}

OPERATORS = {
    "eq": lambda col, v: col == v,
    "neq": lambda col, v: col != v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
}

RESERVED_PARAMS = {"select", "order", "limit", "offset", "columns"}


class QueryError(Exception):
    """Erro de domínio no formato PostgREST (code/message/details/hint)."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 400,
        details: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details
        self.hint = hint

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details, "hint": self.hint}


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: str


@dataclass
class ReadQuery:
    table: str
    filters: list[Filter] = field(default_factory=list)
    order: list[tuple[str, bool]] = field(default_factory=list)  # (coluna, asc)
    limit: int | None = None
    offset: int | None = None
    columns: list[str] = field(default_factory=lambda: ["*"])
    embeds: dict[str, list[str]] = field(default_factory=dict)


def _model_for(table: str) -> type[Base]:
    model = TABLES.get(table)
    if model is None:
        raise QueryError(
            "PGRST205",
            f"Could not find the table 'public.{table}' in the schema cache",
            status=404,
        )
    return model


def _column(model: type[Base], name: str):
    col = sa_inspect(model).columns.get(name)
    if col is None:
        raise QueryError("42703", f"column {model.__tablename__}.{name} does not exist", status=400)
    return col


def _split_top_level(raw: str) -> list[str]:
    """Divide por vírgula ignorando as vírgulas dentro de parênteses."""
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in raw:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


def parse_select(raw: str | None) -> tuple[list[str], dict[str, list[str]]]:
    """
    "*,units(name),services(name,price)" -> (["*"], {"units": ["name"], "services": ["name", "price"]})
    """
    if not raw:
        return ["*"], {}

    columns: list[str] = []
    embeds: dict[str, list[str]] = {}
    for part in _split_top_level(raw):
        if "(" in part:
            if not part.endswith(")"):
                raise QueryError("PGRST100", f"failed to parse select parameter ({raw})")
            name, inner = part[:-1].split("(", 1)
            embeds[name.strip()] = [c.strip() for c in inner.split(",") if c.strip()] or ["*"]
        else:
            columns.append(part)
    return columns or ["*"], embeds


def parse_query(table: str, params: list[tuple[str, str]]) -> ReadQuery:
    """Converte a query string PostgREST (col=op.valor, order, limit, select)."""
    q = ReadQuery(table=table)
    for key, raw in params:
        if key == "select":
            q.columns, q.embeds = parse_select(raw)
        elif key == "order":
            for item in raw.split(","):
                bits = item.strip().split(".")
                direction = bits[1] if len(bits) > 1 else "asc"
                if direction not in ("asc", "desc"):
                    raise QueryError("PGRST100", f"failed to parse order ({raw})")
                q.order.append((bits[0], direction == "asc"))
        elif key in ("limit", "offset"):
            try:
                setattr(q, key, int(raw))
            except ValueError:
                raise QueryError("PGRST100", f"failed to parse {key} ({raw})") from None
        elif key in RESERVED_PARAMS:
            continue
        else:
            op, sep, value = raw.partition(".")
            if op not in OPERATORS or not sep:
                raise QueryError("PGRST100", f"failed to parse filter ({key}={raw})")
            q.filters.append(Filter(key, op, value))
    return q


# =========================
# Conversão de valores
# =========================
def _coerce(col, value: Any) -> Any:
    """Converte o valor vindo da query string/JSON para o tipo Python da coluna."""
    if value is None:
        return None
    py = col.type.python_type
    try:
        if isinstance(value, py):
            return value
        if py is bool:
            return str(value).lower() in ("true", "1", "t")
        if py is date:
            return date.fromisoformat(str(value))
        if py is datetime:
            return datetime.fromisoformat(str(value))
        if py is Decimal:
            return Decimal(str(value))
        if issubclass(py, enum.Enum):
            return py(value)
        return py(value)
    except (ValueError, TypeError, InvalidOperation):
        raise QueryError("22P02", f"invalid input syntax for {col.name}: \"{value}\"") from None


def _to_json(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _row_dict(obj: Any, columns: list[str]) -> dict[str, Any]:
    mapper = sa_inspect(type(obj))
    names = [c.key for c in mapper.column_attrs] if "*" in columns else columns
    out: dict[str, Any] = {}
    for name in names:
        if name not in mapper.column_attrs:
            raise QueryError("42703", f"column {mapper.local_table.name}.{name} does not exist")
        out[name] = _to_json(getattr(obj, name))
    return out


def _relationship_key(model: type[Base], embed: str) -> str:
    """Acha a relação muitos-para-um cujo alvo é a tabela 'embed'."""
    for rel in sa_inspect(model).relationships:
        if rel.direction is RelationshipDirection.MANYTOONE and rel.mapper.local_table.name == embed:
            return rel.key
    raise QueryError(
        "PGRST200",
        f"Could not find a relationship between '{model.__tablename__}' and '{embed}' in the schema cache",
    )


def serialize(obj: Any, columns: list[str], embeds: dict[str, list[str]]) -> dict[str, Any]:
    row = _row_dict(obj, columns)
    for embed, embed_cols in embeds.items():
        related = getattr(obj, _relationship_key(type(obj), embed))
        row[embed] = _row_dict(related, embed_cols) if related is not None else None
    return row


# =========================
# Controle de acesso (row level)
# =========================
def _check_read(table: str, user_id: str | None) -> None:
    if table in PUBLIC_TABLES:
        return
    if user_id is None:
        raise QueryError("42501", f"permission denied for table {table}", status=401)


def _owner_clause(model: type[Base], table: str, user_id: str | None):
    owner_col = OWNED_TABLES.get(table)
    if owner_col is None:
        return None
    return _column(model, owner_col) == user_id


def _where(model: type[Base], filters: list[Filter]):
    clauses = []
    for f in filters:
        col = _column(model, f.column)
        clauses.append(OPERATORS[f.op](col, _coerce(col, f.value)))
    return clauses


# =========================
# Operações de tabela
# =========================
def select_rows(query: ReadQuery, user_id: str | None = None) -> list[dict[str, Any]]:
    model = _model_for(query.table)
    _check_read(query.table, user_id)

    with db_session() as s:
        clauses = _where(model, query.filters)
        owner = _owner_clause(model, query.table, user_id)
        if owner is not None:
            clauses.append(owner)

        q = select(model)
        if clauses:
            q = q.where(and_(*clauses))
        for name, asc in query.order:
            col = _column(model, name)
            q = q.order_by(col.asc() if asc else col.desc())
        if model is TimeSlot:
            # horários ocupados saem antes da paginação
            objs = _free_slots(s, list(s.scalars(q)))
            start = query.offset or 0
            objs = objs[start:] if query.limit is None else objs[start:start + query.limit]
        else:
            if query.limit is not None:
                q = q.limit(query.limit)
            if query.offset is not None:
                q = q.offset(query.offset)
            objs = list(s.scalars(q))
        return [serialize(obj, query.columns, query.embeds) for obj in objs]


def _check_not_null(model: type[Base], values: dict[str, Any]) -> None:
    for col in model.__table__.columns:
        if col.nullable or col.default is not None or col.primary_key:
            continue
        if values.get(col.name) is None:
            raise QueryError(
                "23502",
                f'null value in column "{col.name}" of relation "{model.__tablename__}" violates not-null constraint',
            )


def _check_foreign_keys(s: Session, model: type[Base], values: dict[str, Any]) -> None:
    for col in model.__table__.columns:
        for fk in col.foreign_keys:
            value = values.get(col.name)
            if value is None:
                continue
            target = fk.column
            if s.execute(select(target).where(target == value)).first() is None:
                raise QueryError(
                    "23503",
                    f'insert or update on table "{model.__tablename__}" violates foreign key constraint',
                    status=409,
                    details=f"Key ({col.name})=({value}) is not present in table \"{target.table.name}\".",
                )


def _minutes(hhmm: str) -> int:
    """'14:30' -> 870."""
    hours, _, mins = hhmm.partition(":")
    return int(hours) * 60 + int(mins)


def _booked_intervals(
    s: Session,
    barber_ids: set[str] | None = None,
    exclude_id: str | None = None,
) -> dict[tuple[str, date], list[tuple[int, int]]]:
    """(barbeiro, data) -> [(início, fim)] em minutos dos agendamentos ativos."""
    q = (
        select(
            Appointment.barber_id,
            Appointment.appointment_date,
            Appointment.appointment_time,
            Service.duration_minutes,
        )
        .join(Service, Appointment.service_id == Service.id)
        .where(Appointment.status == AppointmentStatus.SCHEDULED)
    )
    if barber_ids is not None:
        q = q.where(Appointment.barber_id.in_(barber_ids))
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)

    out: dict[tuple[str, date], list[tuple[int, int]]] = {}
    for barber_id, day, time, duration in s.execute(q):
        start = _minutes(time)
        out.setdefault((barber_id, day), []).append((start, start + duration))
    return out


def _free_slots(s: Session, slots: list[TimeSlot]) -> list[TimeSlot]:
    """Tira os horários que caem dentro de um agendamento ativo do barbeiro."""
    if not slots:
        return slots
    booked = _booked_intervals(s, barber_ids={t.barber_id for t in slots})
    return [
        t
        for t in slots
        if not any(a <= _minutes(t.slot_time) < b for a, b in booked.get((t.barber_id, t.slot_date), ()))
    ]


def _slot_taken() -> QueryError:
    return QueryError(
        "23505",
        'duplicate key value violates unique constraint "uq_appointment_barber_slot"',
        status=409,
        details="Horário já reservado para este barbeiro.",
    )


def _check_appointment(s: Session, values: dict[str, Any], exclude_id: str | None = None) -> None:
    """Regras do agendamento: barbeiro da unidade e horário livre (considera a duração do serviço)."""
    barber = s.get(Barber, values.get("barber_id"))
    if barber is not None and barber.unit_id != values.get("unit_id"):
        raise QueryError(
            "23514",
            "new row for relation \"appointments\" violates check constraint \"barber_belongs_to_unit\"",
            status=400,
        )

    if values.get("status") not in (None, AppointmentStatus.SCHEDULED):
        return

    time = values.get("appointment_time") or ""
    try:
        start = _minutes(time)
    except ValueError:
        raise QueryError("22P02", f"invalid input syntax for appointment_time: \"{time}\"") from None
    service = s.get(Service, values.get("service_id"))
    end = start + (service.duration_minutes if service else 0)

    booked = _booked_intervals(s, barber_ids={values.get("barber_id")}, exclude_id=exclude_id)
    for a, b in booked.get((values.get("barber_id"), values.get("appointment_date")), ()):
        if a == start:
            raise _slot_taken()
        if a < end and start < b:
            raise QueryError(
                "23P01",
                'conflicting key value violates exclusion constraint "no_overlapping_appointments"',
                status=409,
                details=f"Conflito com o atendimento das {a // 60:02d}:{a % 60:02d}.",
            )


def insert_rows(table: str, rows: list[dict[str, Any]], user_id: str | None = None) -> list[dict[str, Any]]:
    model = _model_for(table)
    if table not in INSERTABLE_TABLES or user_id is None:
        raise QueryError("42501", f"new row violates row-level security policy for table \"{table}\"", status=403)

    mapper = sa_inspect(model)
    owner_col = OWNED_TABLES.get(table)
    created: list[Any] = []

    with db_session() as s:
        for raw in rows:
            values: dict[str, Any] = {}
            for key, value in raw.items():
                if key not in mapper.column_attrs:
                    raise QueryError("PGRST204", f"Could not find the '{key}' column of '{table}' in the schema cache")
                values[key] = _coerce(_column(model, key), value)
            if owner_col:
                if values.get(owner_col) not in (None, user_id):
                    raise QueryError(
                        "42501", f"new row violates row-level security policy for table \"{table}\"", status=403
                    )
                values[owner_col] = user_id

            _check_not_null(model, values)
            _check_foreign_keys(s, model, values)
            if model is Appointment:
                _check_appointment(s, values)

            obj = model(**values)
            s.add(obj)
            try:
                s.flush()
            except IntegrityError:
                raise _slot_taken() from None
            created.append(obj)

        out = [serialize(obj, ["*"], {}) for obj in created]

    logger.info("Insert em %s: %d linha(s)", table, len(out))
    return out


def update_rows(
    table: str,
    filters: list[Filter],
    values: dict[str, Any],
    user_id: str | None = None,
) -> list[dict[str, Any]]:
    model = _model_for(table)
    allowed = UPDATABLE_COLUMNS.get(table, set())
    if user_id is None or not allowed:
        raise QueryError("42501", f"permission denied for table {table}", status=403)

    bad = set(values) - allowed
    if bad:
        raise QueryError("42501", f"permission denied to update column(s) {', '.join(sorted(bad))}", status=403)
    if not filters:
        raise QueryError("21000", "UPDATE requires a WHERE clause")

    coerced = {k: _coerce(_column(model, k), v) for k, v in values.items()}

    with db_session() as s:
        clauses = _where(model, filters)
        owner = _owner_clause(model, table, user_id)
        if owner is not None:
            clauses.append(owner)

        objs = list(s.scalars(select(model).where(and_(*clauses))))
        reactivating = model is Appointment and coerced.get("status") is AppointmentStatus.SCHEDULED
        for obj in objs:
            if reactivating and obj.status is not AppointmentStatus.SCHEDULED:
                current = {c.key: getattr(obj, c.key) for c in sa_inspect(model).column_attrs}
                _check_appointment(s, {**current, **coerced}, exclude_id=obj.id)
            for k, v in coerced.items():
                setattr(obj, k, v)
            try:
                s.flush()
            except IntegrityError:
                raise _slot_taken() from None
        out = [serialize(obj, ["*"], {}) for obj in objs]

    logger.info("Update em %s: %d linha(s)", table, len(out))
    return out
