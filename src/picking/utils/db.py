"""Schema management for RDBMS-backed deployments of the picking domain.

The default configuration keeps everything in memory and has nothing to
create. Under the production overlay the PostgreSQL provider gets one table
per aggregate, entity and projection.
"""

import structlog
from protean.domain import Domain
from sqlalchemy import create_engine

logger = structlog.get_logger(__name__)

_RDBMS_PROVIDERS = ("sqlite", "postgresql")


def _rdbms_providers(domain: Domain):
    for provider in domain.providers.values():
        if provider.conn_info["provider"] in _RDBMS_PROVIDERS:
            yield provider


def _persisted_classes(domain: Domain):
    registry = domain.registry
    for records in (registry.aggregates, registry.entities, registry.projections):
        for record in records.values():
            yield record.cls


def setup_db(domain: Domain) -> None:
    """Create every picking table on each RDBMS provider."""
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            # A repository's DAO registers its table on the provider metadata
            tables = []
            for cls in _persisted_classes(domain):
                if cls.meta_.provider == provider.name:
                    domain.repository_for(cls)._dao  # noqa: B018
                    tables.append(cls.__name__)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))
            logger.info("Picking schema created", provider=provider.name, tables=tables)


def drop_db(domain: Domain) -> None:
    """Drop every picking table on each RDBMS provider."""
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
            logger.info("Picking schema dropped", provider=provider.name)
