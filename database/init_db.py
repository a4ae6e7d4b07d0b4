import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from payflow import create_app
from payflow.db import get_db, init_db
from payflow.infrastructure.repositories import DirectoryRepository


app = create_app()

DEMO_COMPANIES = (("emp-01", "Empresa Matriz", "MTZ"), ("emp-02", "Empresa Filial", "FIL"))
DEMO_SECTORS = (("set-adm", "Administrativo"), ("set-ti", "Tecnologia"))
DEMO_USERS = (
    ("u-solicitante", "Solicitante Demo", "requester", None),
    ("u-gestor", "Gestor Demo", "manager", "emp-01"),
    ("u-financeiro", "Financeiro Demo", "finance", None),
    ("u-admin", "Administrador Demo", "admin", None),
)


def seed_demo_directory(db) -> None:
    directory = DirectoryRepository()
    with db.transaction():
        for company_id, name, code in DEMO_COMPANIES:
            if not directory.company_exists(db, company_id):
                directory.add_company(db, company_id, name, code)
        for sector_id, name in DEMO_SECTORS:
            if not directory.sector_exists(db, sector_id):
                directory.add_sector(db, sector_id, name)
        for user_id, name, role, company_id in DEMO_USERS:
            directory.upsert_profile(db, user_id, name)
            if not directory.grants_for(db, user_id):
                directory.add_grant(db, user_id, role, company_id)


if __name__ == "__main__":
    with app.app_context():
        init_db()
        if os.environ.get("PAYFLOW_SEED_DEMO", "0").strip().lower() in {"1", "true", "yes", "sim"}:
            seed_demo_directory(get_db())
    print("Database initialized.")
