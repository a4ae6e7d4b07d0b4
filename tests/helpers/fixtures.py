from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from payflow.domain.contracts import Actor, RoleGrant
from payflow.infrastructure.repositories import DirectoryRepository


VALID_TAX_ID = "11222333000181"
OTHER_VALID_TAX_ID = "11444777000161"

START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


REQUESTER = Actor(user_id="u-req", grants=(RoleGrant("requester"),), display_name="Ana Solicitante")
OTHER_REQUESTER = Actor(user_id="u-req-2", grants=(RoleGrant("requester"),))
MANAGER_A = Actor(user_id="u-mgr-a", grants=(RoleGrant("manager", "emp-a"),))
MANAGER_B = Actor(user_id="u-mgr-b", grants=(RoleGrant("manager", "emp-b"),))
FINANCE = Actor(user_id="u-fin", grants=(RoleGrant("finance"),))
ADMIN = Actor(user_id="u-adm", grants=(RoleGrant("admin"),))

PROFILES = {
    "u-req": "Ana Solicitante",
    "u-req-2": "Bruno Solicitante",
    "u-mgr-a": "Marcos Gestor",
    "u-mgr-b": "Beatriz Gestora",
    "u-fin": "Fernanda Financeiro",
    "u-adm": "Alberto Admin",
}


def seed_directory(db) -> None:
    directory = DirectoryRepository()
    with db.transaction():
        directory.add_company(db, "emp-a", "Empresa A", "A")
        directory.add_company(db, "emp-b", "Empresa B", "B")
        directory.add_sector(db, "set-1", "Administrativo")
        for user_id, name in PROFILES.items():
            directory.upsert_profile(db, user_id, name)
        for actor in (REQUESTER, OTHER_REQUESTER, MANAGER_A, MANAGER_B, FINANCE, ADMIN):
            for grant in actor.grants:
                directory.add_grant(db, actor.user_id, grant.role, grant.company_id)


def request_payload(**overrides) -> dict:
    payload = {
        "company_id": "emp-a",
        "sector_id": "set-1",
        "supplier_name": "Fornecedor Alfa Ltda",
        "supplier_tax_id": VALID_TAX_ID,
        "invoice_number": "NF-1001",
        "issue_date": date(2026, 2, 25).isoformat(),
        "due_date": (START.date() + timedelta(days=20)).isoformat(),
        "description": "Servico de manutencao",
        "total_amount": Decimal("1500.00"),
        "invoice_document_ref": "notas/nf-1001.pdf",
    }
    payload.update(overrides)
    return payload
