"""Business logic for the dispatch core."""
