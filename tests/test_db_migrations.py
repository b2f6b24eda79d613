import os
import sqlite3
import unittest

from erp_obras import create_app
from erp_obras.config import Config
from erp_obras.db import close_db
from erp_obras.db_migrations import to_sqlalchemy_url
from tests.helpers.temp_db import TempDbSandbox


def _table_exists(db_path: str, table_name: str) -> bool:
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
            (table_name,),
        ).fetchone()
        return row is not None
    finally:
        conn.close()


def _count_records(db_path: str, workspace_id: str, collection: str) -> int:
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT COUNT(*) FROM records WHERE workspace_id = ? AND collection = ?",
            (workspace_id, collection),
        ).fetchone()
        return int(row[0])
    finally:
        conn.close()


class DbMigrationsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="migrations")
        self.db_path = self._temp_db.db_path
        self._prev_env = {key: os.environ.get(key) for key in ("FLASK_ENV", "DATABASE_URL", "DB_PATH")}
        os.environ["FLASK_ENV"] = "development"
        os.environ.pop("DATABASE_URL", None)
        os.environ.pop("DB_PATH", None)

    def tearDown(self) -> None:
        for key, value in self._prev_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        self._temp_db.cleanup()

    def _build_app(self, *, testing: bool, db_auto_init: bool):
        return create_app(self._temp_db.make_config(Config, TESTING=testing, DB_AUTO_INIT=db_auto_init))

    def test_schema_not_created_without_flag(self) -> None:
        app = self._build_app(testing=False, db_auto_init=False)
        with app.app_context():
            close_db()

        self.assertFalse(_table_exists(self.db_path, "records"))

    def test_schema_created_with_explicit_dev_flag(self) -> None:
        app = self._build_app(testing=False, db_auto_init=True)
        with app.app_context():
            close_db()

        for table in ("workspaces", "records", "status_events"):
            self.assertTrue(_table_exists(self.db_path, table), table)

    def test_flask_db_upgrade_and_downgrade(self) -> None:
        app = self._build_app(testing=False, db_auto_init=False)
        runner = app.test_cli_runner()

        upgrade_result = runner.invoke(args=["db", "upgrade"])
        self.assertEqual(upgrade_result.exit_code, 0, msg=upgrade_result.output)
        self.assertTrue(_table_exists(self.db_path, "records"))
        self.assertTrue(_table_exists(self.db_path, "status_events"))

        downgrade_result = runner.invoke(args=["db", "downgrade", "base"])
        self.assertEqual(downgrade_result.exit_code, 0, msg=downgrade_result.output)
        self.assertFalse(_table_exists(self.db_path, "records"))

        reupgrade_result = runner.invoke(args=["db", "upgrade"])
        self.assertEqual(reupgrade_result.exit_code, 0, msg=reupgrade_result.output)
        self.assertTrue(_table_exists(self.db_path, "records"))

    def test_seed_demo_command_is_idempotent(self) -> None:
        app = self._build_app(testing=False, db_auto_init=False)
        runner = app.test_cli_runner()
        self.assertEqual(runner.invoke(args=["db", "upgrade"]).exit_code, 0)

        first = runner.invoke(args=["db", "seed-demo", "--workspace", "obra-cli"])
        self.assertEqual(first.exit_code, 0, msg=first.output)
        self.assertIn("obra-cli", first.output)
        self.assertEqual(_count_records(self.db_path, "obra-cli", "suppliers"), 270)
        self.assertEqual(_count_records(self.db_path, "obra-cli", "orders"), 2)

        second = runner.invoke(args=["db", "seed-demo", "--workspace", "obra-cli"])
        self.assertEqual(second.exit_code, 0, msg=second.output)
        self.assertIn("nada a fazer", second.output)
        self.assertEqual(_count_records(self.db_path, "obra-cli", "suppliers"), 270)

    def test_sqlalchemy_url_conversion(self) -> None:
        self.assertEqual(to_sqlalchemy_url("postgres://u:p@h/db"), "postgresql://u:p@h/db")
        self.assertEqual(to_sqlalchemy_url("sqlite:///x.db"), "sqlite:///x.db")
        self.assertTrue(to_sqlalchemy_url(self.db_path).startswith("sqlite:////"))
        with self.assertRaises(RuntimeError):
            to_sqlalchemy_url(" ")


if __name__ == "__main__":
    unittest.main()
