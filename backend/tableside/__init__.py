"""Tableside venue reservations and payments API."""
