"""
Pytest fixtures for cashdesk backend tests.

Provides an in-memory database, a branch with one register per tier, and a
test client.
"""

from datetime import datetime

import pytest
from sqlalchemy import create_engine

from cashdesk import create_app
from cashdesk.extensions import db
from cashdesk.services import register_service, shift_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    Application on a SQLite file, for tests that need a second connection.

    The in-memory database lives on one shared connection, so a second
    writer can only be simulated against a file.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'cashdesk.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.engine.dispose()


@pytest.fixture(scope='function')
def other_connection(file_app):
    """Independent engine on the file database (another worker process)."""
    engine = create_engine(file_app.config['SQLALCHEMY_DATABASE_URI'])
    yield engine
    engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def branch(db_session):
    """Branch on the app default timezone (UTC in tests)."""
    return register_service.create_branch(name="Centro", code="CEN")


@pytest.fixture(scope='function')
def sales_register(branch):
    return register_service.create_register(branch.id, "Caja 1", kind="sales", display_order=1)


@pytest.fixture(scope='function')
def relief_register(branch):
    return register_service.create_register(branch.id, "Caja de Alivio", kind="relief", display_order=2)


@pytest.fixture(scope='function')
def vault_register(branch):
    return register_service.create_register(branch.id, "Caja Fuerte", kind="vault", display_order=3)


@pytest.fixture(scope='function')
def sales_shift(sales_register):
    """Open shift on the sales register with 1000.00 opening cash."""
    return shift_service.open_shift(
        sales_register.id,
        opener_id=7,
        opening_amount="1000.00",
        now=datetime(2026, 3, 14, 12, 0),
    )


@pytest.fixture(scope='function')
def relief_shift(relief_register):
    return shift_service.open_shift(
        relief_register.id,
        opener_id=8,
        opening_amount="0",
        now=datetime(2026, 3, 14, 12, 0),
    )


@pytest.fixture(scope='function')
def vault_shift(vault_register):
    return shift_service.open_shift(
        vault_register.id,
        opener_id=9,
        opening_amount="5000.00",
        now=datetime(2026, 3, 14, 12, 0),
    )


@pytest.fixture(scope='function')
def actor_headers():
    """Caller identity header for user 7."""
    return {'X-Actor-Id': '7'}
