from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .consolidation.controller import register as register_consolidation
from .container import Container, build_container
from .core.constants import DEFAULT_APPROVE_MAX_ATTEMPTS
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .ledger.controller import register as register_ledger
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]


def create_app(container: Optional[Container] = None, *, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("demo seed ready")

        container = build_container(
            db_config=db_config,
            approve_max_attempts=int(getattr(settings, "APPROVE_MAX_ATTEMPTS", DEFAULT_APPROVE_MAX_ATTEMPTS)),
        )

    app.extensions["absence_container"] = container

    register_users(app, container)
    register_ledger(app, container)
    register_consolidation(app, container)

    return app
