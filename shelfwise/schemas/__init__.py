"""Schemas - Pydantic request models for the HTTP boundary."""
