"""Farm marketplace order lifecycle: order service and async client."""

__version__ = "1.0.0"
