"""Pydantic v2 request/response schemas for the dispatch API."""
