"""Query in-memory record batches with SQL and GraphQL and encode results as JSON or CSV."""

__version__ = "0.1.0"