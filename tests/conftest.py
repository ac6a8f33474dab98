import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the settings overlay, then initialize the domain and push its
    domain_context so the model can be referred to as `current_domain`.
    """
    os.environ["ORDERING_ENV"] = session.config.option.env

    from ordering.bootstrap import init_domain
    from ordering.domain import ordering

    init_domain()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def settings():
    from ordering.config import Settings

    return Settings.from_env()


@pytest.fixture(scope="session")
def engine(settings):
    from ordering.utils.db import create_engine_for, drop_db, setup_db

    engine = create_engine_for(settings)
    setup_db(engine)

    yield engine

    drop_db(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def run_around_tests(engine):
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from ordering.persistence.tables import Base

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
