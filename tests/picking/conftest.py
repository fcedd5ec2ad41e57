import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def picking_bed():
    from picking.domain import picking

    bed = DomainFixture(picking)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(picking_bed):
    with picking_bed.domain_context():
        yield
