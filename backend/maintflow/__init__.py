from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .config.settings import load_settings
    from .logging_config import configure_logging
    from .errors import WorkflowError

    app = Flask(__name__)
    # read once; services receive values (QR window) explicitly
    app.config.update(load_settings(config))
    configure_logging(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    # Register models before any mapper is configured
    from .models import org, ticket, approval, work_order, qr, audit  # noqa: F401

    from .routes.iam import iam_bp
    from .routes.tickets import tickets_bp
    from .routes.work_orders import work_orders_bp
    from .routes.qr import qr_bp
    from .routes.invoice_batches import batches_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(tickets_bp, url_prefix='/tickets')
    app.register_blueprint(work_orders_bp, url_prefix='/work-orders')
    app.register_blueprint(qr_bp, url_prefix='/qr')
    app.register_blueprint(batches_bp, url_prefix='/invoice-batches')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, WorkflowError):
            return {'error': e.to_dict()}, e.code
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()
