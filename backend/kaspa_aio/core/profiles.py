"""Profile catalog.

A profile is a bundle of containers that is installed and removed as a
unit. The ids here are the ones written to ``profiles.selected``.
"""

from pydantic import BaseModel


class ProfileDefinition(BaseModel):
    id: str
    display_name: str
    description: str
    services: list[str]


PROFILE_CATALOG: tuple[ProfileDefinition, ...] = (
    ProfileDefinition(
        id="kaspa-node",
        display_name="Kaspa Node",
        description="Standard pruning Kaspa node with optional wallet",
        services=["kaspa-node"],
    ),
    ProfileDefinition(
        id="kasia-app",
        display_name="Kasia Application",
        description="Kasia messaging and wallet application",
        services=["kasia-app"],
    ),
    ProfileDefinition(
        id="k-social-app",
        display_name="K-Social Application",
        description="K-Social decentralized social application",
        services=["k-social"],
    ),
    ProfileDefinition(
        id="kaspa-explorer-bundle",
        display_name="Kaspa Explorer",
        description="Block explorer with Simply-Kaspa indexer and database",
        services=["kaspa-explorer", "simply-kaspa-indexer", "timescaledb-explorer"],
    ),
    ProfileDefinition(
        id="kasia-indexer",
        display_name="Kasia Indexer",
        description="Kasia indexer with embedded database",
        services=["kasia-indexer"],
    ),
    ProfileDefinition(
        id="k-indexer-bundle",
        display_name="K-Indexer",
        description="K-Indexer with TimescaleDB database",
        services=["k-indexer", "timescaledb-kindexer"],
    ),
    ProfileDefinition(
        id="kaspa-archive-node",
        display_name="Kaspa Archive Node",
        description="Non-pruning archive node for complete blockchain history",
        services=["kaspa-archive-node"],
    ),
    ProfileDefinition(
        id="kaspa-stratum",
        display_name="Kaspa Stratum",
        description="Stratum bridge for mining hardware",
        services=["kaspa-stratum"],
    ),
)


def catalog_ids(catalog=PROFILE_CATALOG) -> list[str]:
    return [profile.id for profile in catalog]
