"""Domain models and the adjusted cost base engine.

This package contains the in-memory (Pydantic) transaction and ledger models
together with the engine folding them into cost pool snapshots. They are
independent from persistence models so that business logic and testing can
evolve without DB coupling.
"""

__all__ = [
    "acb",
    "ledger",
    "superficial",
    "transaction",
]
