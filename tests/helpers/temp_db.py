from __future__ import annotations

import shutil
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from payflow.db import Database, connect_database, init_db


_REPO_ROOT = Path(__file__).resolve().parents[2]
_TEMP_ROOT = Path(tempfile.gettempdir()).resolve()


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def assert_safe_temp_db_path(db_path: str) -> None:
    resolved = Path(db_path).resolve()
    if not _is_within(resolved, _TEMP_ROOT):
        raise ValueError(f"Temporary DB must live under TEMP: {resolved}")
    if _is_within(resolved, _REPO_ROOT):
        raise ValueError(f"Temporary DB cannot live inside repository: {resolved}")


def remove_tree_with_retry(path: str, attempts: int = 6, base_delay: float = 0.05) -> None:
    root = Path(path)
    for attempt in range(attempts):
        if not root.exists():
            return
        try:
            shutil.rmtree(root)
            return
        except FileNotFoundError:
            return
        except OSError:
            time.sleep(base_delay * (2**attempt))


@dataclass
class TempDbSandbox:
    """One throwaway SQLite file per test case, outside the repository."""

    prefix: str = "payflow_tests"
    db_name: str = "payflow_test.db"

    def __post_init__(self) -> None:
        folder = _TEMP_ROOT / f"{self.prefix}_{uuid.uuid4().hex}"
        folder.mkdir(parents=True, exist_ok=False)
        self.temp_dir = str(folder)
        self.db_path = str(folder / self.db_name)
        assert_safe_temp_db_path(self.db_path)
        self._connections: list[Database] = []

    def make_config(self, base_config, **overrides):
        attrs = {
            "TESTING": True,
            "DATABASE_DIR": self.temp_dir,
            "DB_PATH": self.db_path,
            "LOG_JSON": False,
        }
        attrs.update(overrides)
        return type("TempConfig", (base_config,), attrs)

    def connect(self, *, initialize: bool = True) -> Database:
        db = connect_database(self.db_path)
        if initialize:
            init_db(db)
        self._connections.append(db)
        return db

    def cleanup(self) -> None:
        for db in self._connections:
            try:
                db.close()
            except Exception:  # noqa: BLE001
                pass
        self._connections.clear()
        remove_tree_with_retry(self.temp_dir)
