"""
Barbearia Pro.

Estrutura:
- rest_client.py : SDK HTTP do backend hospedado (tabelas PostgREST + auth)
- session.py     : contexto de sessão (usuário, token, ciclo de vida)
- booking.py     : fluxo de agendamento em 5 etapas
- dashboard.py   : próximo agendamento, cancelar/remarcar, promoções
- navigation.py  : abas e controlador raiz (loading / auth / páginas)

Backend local (emula o serviço hospedado):
- db.py / models.py / auth_models.py : SQLAlchemy
- services.py    : consultas estilo PostgREST com regras por usuário
- api_main.py    : API FastAPI (/rest/v1, /auth/v1)
- seed.py / cli.py
"""
