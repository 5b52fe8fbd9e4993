import os
import unittest
from unittest.mock import patch

from tenderhub import create_app
from tenderhub.config import Config, _bool_env, _int_env


class ProductionGuardTest(unittest.TestCase):
    def test_production_requires_database_url(self) -> None:
        class ProdConfig(Config):
            DATABASE_URL = None
            SECRET_KEY = "real-secret"

        with patch.dict(os.environ, {"FLASK_ENV": "production"}):
            with self.assertRaises(RuntimeError):
                create_app(ProdConfig)

    def test_production_requires_a_secret_key(self) -> None:
        class ProdConfig(Config):
            DATABASE_URL = "postgresql://tenderhub@db/tenderhub"

        with patch.dict(os.environ, {"FLASK_ENV": "production"}):
            with self.assertRaises(RuntimeError) as ctx:
                ProdConfig()
        self.assertIn("SECRET_KEY", str(ctx.exception))

    def test_production_settings_pass_the_guard(self) -> None:
        class ProdConfig(Config):
            DATABASE_URL = "postgresql://tenderhub@db/tenderhub"
            SECRET_KEY = "real-secret"

        with patch.dict(os.environ, {"FLASK_ENV": "production"}):
            ProdConfig()

    def test_development_accepts_defaults(self) -> None:
        with patch.dict(os.environ, {"FLASK_ENV": "development"}):
            cfg = Config()
        self.assertEqual(cfg.NOTIFICATION_DISPATCH_MODE, os.environ.get("NOTIFICATION_DISPATCH_MODE", "pool"))


class EnvParsingTest(unittest.TestCase):
    def test_bool_env(self) -> None:
        with patch.dict(os.environ, {"TENDERHUB_FLAG": " Yes "}):
            self.assertTrue(_bool_env("TENDERHUB_FLAG", False))
        with patch.dict(os.environ, {"TENDERHUB_FLAG": "off"}):
            self.assertFalse(_bool_env("TENDERHUB_FLAG", True))
        os.environ.pop("TENDERHUB_FLAG", None)
        self.assertTrue(_bool_env("TENDERHUB_FLAG", True))

    def test_int_env(self) -> None:
        with patch.dict(os.environ, {"TENDERHUB_NUMBER": "12"}):
            self.assertEqual(_int_env("TENDERHUB_NUMBER", 3), 12)
        with patch.dict(os.environ, {"TENDERHUB_NUMBER": "many"}):
            self.assertEqual(_int_env("TENDERHUB_NUMBER", 3), 3)


if __name__ == "__main__":
    unittest.main()
