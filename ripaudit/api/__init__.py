"""RIPAUDIT HTTP API."""
