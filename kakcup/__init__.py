import os
from datetime import timedelta

from flask import Flask

SESSION_DAYS = 7


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def create_app():
    app = Flask(__name__)

    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL is required; configure a PostgreSQL connection string.")

    secret = os.environ.get("SECRET_KEY") or os.environ.get("SESSION_SECRET")
    if not secret:
        app.logger.warning("SECRET_KEY not set; using an insecure development key")
        secret = "dev-secret"
    production = (os.environ.get("APP_ENV") or os.environ.get("FLASK_ENV") or "").lower() == "production"
    app.config.update(
        SECRET_KEY=secret,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Strict",
        SESSION_COOKIE_SECURE=production,
        PERMANENT_SESSION_LIFETIME=timedelta(days=SESSION_DAYS),
    )

    # Pool is optional; datastore falls back to direct connections
    try:
        from . import datastore_pg as _pg
        _pg.init_pool(minconn=_env_int("DB_POOL_MIN", 1), maxconn=_env_int("DB_POOL_MAX", 10))
    except Exception:  # pragma: no cover
        app.logger.exception("PostgreSQL pool initialization failed; continuing without pool")

    from . import auth, routes
    app.register_blueprint(auth.bp)
    app.register_blueprint(routes.bp)

    return app
