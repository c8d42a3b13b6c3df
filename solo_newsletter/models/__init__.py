"""Pydantic models for documents, dispatch reports and settings."""
