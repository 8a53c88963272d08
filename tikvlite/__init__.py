"""Raw key-value client core: regions, request plans, sharding, retries and metrics."""

__version__ = "0.1.0"