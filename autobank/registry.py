from __future__ import annotations

from typing import Dict

from .adapters.base import StatementSource
from .adapters.deutsche_bank import DeutscheBankAdapter
from .adapters.n26 import N26Adapter
from .config import Config

BankRegistry = Dict[str, StatementSource]


def register(registry: BankRegistry, bank: str, source: StatementSource) -> None:
    """Add a source under bank; an identifier can only be registered once."""
    if bank in registry:
        raise ValueError(f"Bank already registered: {bank}")
    registry[bank] = source


def build_registry(config: Config) -> BankRegistry:
    """Instantiate one adapter per bank section present in the config."""
    registry: BankRegistry = {}

    if config.n26 is not None:
        register(registry, "n26", N26Adapter(config.n26.user, config.n26.password))

    if config.db is not None:
        register(registry, "db", DeutscheBankAdapter(config.db.branch, config.db.account, config.db.pin))

    return registry
