import os

import pytest

# Test directory -> marker applied to every test collected from it
_LAYER_MARKERS = {
    "domain": pytest.mark.domain,
    "application": pytest.mark.application,
    "integration": pytest.mark.integration,
    "bdd": pytest.mark.bdd,
}


def pytest_addoption(parser):
    parser.addoption("--env", action="store", default="test", help="PROTEAN_ENV overlay to run the suite against")


def pytest_sessionstart(session):
    """Initialise the picking domain once and leave its context pushed for collection."""
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from picking.domain import picking

    picking.init()
    picking.domain_context().push()


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = item.path.parts
        for layer, marker in _LAYER_MARKERS.items():
            if layer in parts:
                item.add_marker(marker)
                break


@pytest.fixture(scope="session", autouse=True)
def picking_schema():
    from picking.domain import picking
    from picking.utils.db import drop_db, setup_db

    setup_db(picking)
    yield
    drop_db(picking)


@pytest.fixture(autouse=True)
def clean_stores():
    """Empty every provider and the event store after each test."""
    yield

    from protean import current_domain

    for provider in current_domain.providers.values():
        provider._data_reset()
    current_domain.event_store.store._data_reset()
