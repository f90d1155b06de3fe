"""Request lifecycle event emission and change feed."""
