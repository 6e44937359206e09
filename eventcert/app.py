import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from .models import Attendee, CertificateTemplate, Event  # noqa: E402,F401


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logging.warning("ignoring invalid %s=%r", name, raw)
        return default


def create_app():
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")

    DB_USER = os.getenv("DB_USER", "eventcert")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "eventcert")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024

    app.config["CERT_ASSETS_DIR"] = os.getenv(
        "CERT_ASSETS_DIR", os.path.join(app.root_path, "assets")
    )
    app.config["CERT_IMAGE_FETCH_TIMEOUT"] = _env_float("CERT_IMAGE_FETCH_TIMEOUT", 10.0)
    app.config["CERT_BATCH_DELAY_SECONDS"] = _env_float("CERT_BATCH_DELAY_SECONDS", 0.5)
    app.config["CERT_REQUIRE_TEMPLATE"] = os.getenv("CERT_REQUIRE_TEMPLATE", "").lower() in {
        "1",
        "true",
        "yes",
    }

    db.init_app(app)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    @app.get("/api/ping")
    def ping():
        try:
            db.session.execute(db.select(Event.id).limit(1))
        except Exception as exc:
            app.logger.error("[ping] database unreachable: %s", exc)
            return jsonify({"ok": False, "detail": str(exc)}), 500
        return jsonify({"ok": True})

    from .routes.certificate_templates import bp as certificate_templates_bp
    from .routes.certificates import bp as certificates_bp

    app.register_blueprint(certificate_templates_bp)
    app.register_blueprint(certificates_bp)

    return app
