from __future__ import annotations

import argparse

from barbearia.auth_service import create_user
from barbearia.formatting import format_price
from barbearia.seed import seed_base
from barbearia.services import QueryError, init_db, parse_query, select_rows
from barbearia.settings import DATABASE_URL, configure_logging


def _rows(table: str, *params: tuple[str, str]) -> list[dict]:
    return select_rows(parse_query(table, list(params)))


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base(days=args.days)
    print(f"DB inicializado e seed concluído ({DATABASE_URL}).")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "units":
        for u in _rows("units", ("order", "name.asc")):
            print(f"{u['id']} | {u['name']} | {u['address'] or '-'}")
    elif args.entity == "services":
        for s in _rows("services", ("order", "name.asc")):
            print(f"{s['id']} | {s['name']} ({s['duration_minutes']} min) | {format_price(s['price'])}")
    elif args.entity == "barbers":
        params = [("order", "name.asc")]
        if args.unit_id:
            params.append(("unit_id", f"eq.{args.unit_id}"))
        for b in _rows("barbers", *params):
            print(f"{b['id']} | {b['name']} | {b['specialty'] or '-'} | unidade {b['unit_id']}")
    elif args.entity == "slots":
        params = [("order", "slot_date.asc,slot_time.asc")]
        if args.barber_id:
            params.append(("barber_id", f"eq.{args.barber_id}"))
        for t in _rows("time_slots", *params):
            print(f"{t['slot_date']} {t['slot_time']} | barbeiro {t['barber_id']}")


def cmd_add_user(args: argparse.Namespace) -> None:
    try:
        uid = create_user(args.email, args.password, full_name=args.name)
    except ValueError as e:
        raise SystemExit(str(e))
    print(f"Usuário criado: {uid}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="barbearia", description="CLI Barbearia Pro (backend local)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Cria DB e carrega seed")
    p_init.add_argument("--days", type=int, default=5, help="Dias úteis com horários gerados")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entidades")
    p_list.add_argument("entity", choices=["units", "services", "barbers", "slots"])
    p_list.add_argument("--unit-id", default=None, help="Filtra barbeiros pela unidade")
    p_list.add_argument("--barber-id", default=None, help="Filtra horários pelo barbeiro")
    p_list.set_defaults(func=cmd_list)

    p_user = sub.add_parser("add-user", help="Cria usuário (e perfil)")
    p_user.add_argument("--email", required=True)
    p_user.add_argument("--password", required=True)
    p_user.add_argument("--name", default=None)
    p_user.set_defaults(func=cmd_add_user)

    return p


def main(argv: list[str] | None = None) -> None:
    configure_logging("WARNING")
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # garante tabelas
    try:
        args.func(args)
    except QueryError as e:
        raise SystemExit(f"{e.code}: {e.message}")


if __name__ == "__main__":
    main()
