"""Keyword search service for a notes application."""
