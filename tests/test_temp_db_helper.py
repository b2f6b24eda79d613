import os
import sqlite3
import tempfile
import unittest

from tests.helpers.temp_db import TempDbSandbox, assert_safe_temp_db_path


class TempDbHelperTest(unittest.TestCase):
    def test_temp_db_create_and_cleanup(self) -> None:
        sandbox = TempDbSandbox(prefix="temp_db_sanity")
        db_path = sandbox.db_path
        temp_dir = sandbox.temp_dir

        self.assertTrue(os.path.exists(temp_dir))
        self.assertTrue(os.path.realpath(db_path).startswith(os.path.realpath(tempfile.gettempdir())))

        conn = sqlite3.connect(db_path)
        try:
            conn.execute("CREATE TABLE IF NOT EXISTS sanity (id INTEGER PRIMARY KEY, value TEXT)")
            conn.execute("INSERT INTO sanity (value) VALUES ('ok')")
            row = conn.execute("SELECT COUNT(*) FROM sanity").fetchone()
            self.assertEqual(int(row[0]), 1)
        finally:
            conn.close()

        sandbox.cleanup()
        self.assertFalse(os.path.exists(db_path))
        self.assertFalse(os.path.exists(temp_dir))

    def test_disallow_workspace_paths(self) -> None:
        workspace_db = os.path.join(os.getcwd(), "erp_obras_test.db")
        with self.assertRaises(ValueError):
            assert_safe_temp_db_path(workspace_db)

    def test_make_config_overrides(self) -> None:
        sandbox = TempDbSandbox(prefix="temp_db_config")
        try:
            base = type("BaseConfig", (), {"DB_PATH": "prod.db", "SEED_DEMO_DATA": True})
            config = sandbox.make_config(base, TESTING=True)
            self.assertEqual(config.DB_PATH, sandbox.db_path)
            self.assertFalse(config.SEED_DEMO_DATA)
            self.assertTrue(config.TESTING)
        finally:
            sandbox.cleanup()

    def test_make_app_is_closed_on_cleanup(self) -> None:
        sandbox = TempDbSandbox(prefix="temp_db_app")
        app = sandbox.make_app()
        self.assertEqual(app.config["DB_PATH"], sandbox.db_path)
        self.assertEqual(app.config["AI_MODE"], "mock")
        self.assertEqual(app.test_client().get("/health").status_code, 200)

        sandbox.cleanup()
        self.assertEqual(sandbox.apps, [])
        self.assertFalse(os.path.exists(sandbox.temp_dir))


if __name__ == "__main__":
    unittest.main()
