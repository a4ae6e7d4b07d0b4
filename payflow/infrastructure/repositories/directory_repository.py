from __future__ import annotations

from typing import List, Tuple

from payflow.domain.contracts import RoleGrant
from payflow.infrastructure.repositories.base import BaseRepository
from payflow.policies import normalize_grants


class DirectoryRepository(BaseRepository):
    """Profiles, role grants and the reference tables a request points at."""

    def display_name(self, db, user_id: str) -> str | None:
        row = db.execute(
            "SELECT name FROM profiles WHERE user_id = ? LIMIT 1",
            (user_id,),
        ).fetchone()
        if not row:
            return None
        return str(row["name"] or "").strip() or None

    def grants_for(self, db, user_id: str) -> Tuple[RoleGrant, ...]:
        rows = db.execute(
            """
            SELECT role, company_id
            FROM user_roles
            WHERE user_id = ?
            ORDER BY id ASC
            """,
            (user_id,),
        ).fetchall()
        return normalize_grants(self.rows_to_dicts(rows), user_id=user_id)

    def company_exists(self, db, company_id: str) -> bool:
        row = db.execute("SELECT 1 AS found FROM companies WHERE id = ? LIMIT 1", (company_id,)).fetchone()
        return row is not None

    def sector_exists(self, db, sector_id: str) -> bool:
        row = db.execute("SELECT 1 AS found FROM sectors WHERE id = ? LIMIT 1", (sector_id,)).fetchone()
        return row is not None

    def cost_center_exists(self, db, cost_center_id: str) -> bool:
        row = db.execute("SELECT 1 AS found FROM cost_centers WHERE id = ? LIMIT 1", (cost_center_id,)).fetchone()
        return row is not None

    def list_companies(self, db) -> List[dict]:
        rows = db.execute("SELECT id, name, code FROM companies ORDER BY name ASC, id ASC").fetchall()
        return self.rows_to_dicts(rows)

    def list_sectors(self, db) -> List[dict]:
        rows = db.execute("SELECT id, name FROM sectors ORDER BY name ASC, id ASC").fetchall()
        return self.rows_to_dicts(rows)

    def upsert_profile(self, db, user_id: str, name: str, *, email: str | None = None) -> None:
        db.execute(
            """
            INSERT INTO profiles (user_id, name, email)
            VALUES (?, ?, ?)
            ON CONFLICT (user_id) DO UPDATE SET name = excluded.name, email = excluded.email
            """,
            (user_id, name, email),
        )

    def add_grant(self, db, user_id: str, role: str, company_id: str | None = None) -> None:
        db.execute(
            "INSERT INTO user_roles (user_id, role, company_id) VALUES (?, ?, ?)",
            (user_id, role, company_id),
        )

    def add_company(self, db, company_id: str, name: str, code: str | None = None) -> None:
        db.execute("INSERT INTO companies (id, name, code) VALUES (?, ?, ?)", (company_id, name, code))

    def add_sector(self, db, sector_id: str, name: str) -> None:
        db.execute("INSERT INTO sectors (id, name) VALUES (?, ?)", (sector_id, name))
