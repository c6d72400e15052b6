import os, sys, pytest
# Ensure the backend directory is on path so 'maintflow' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
import maintflow
from maintflow import create_app, get_db
from maintflow.models.org import Base
# Import all model modules to ensure tables are registered before create_all
import maintflow.models.ticket  # noqa: F401
import maintflow.models.approval  # noqa: F401
import maintflow.models.work_order  # noqa: F401
import maintflow.models.qr  # noqa: F401
import maintflow.models.audit  # noqa: F401

TEST_SECRET = 'test-secret-key-with-at-least-32-bytes!'


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'JWT_SECRET_KEY': TEST_SECRET, 'LOG_LEVEL': 'WARNING'})
    app.config['TESTING'] = True
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def fresh_db(app_instance):
    """Every test starts from empty tables and a new session."""
    maintflow.SessionLocal.remove()
    Base.metadata.drop_all(maintflow.db_engine)
    Base.metadata.create_all(maintflow.db_engine)
    yield
    maintflow.SessionLocal.remove()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance
