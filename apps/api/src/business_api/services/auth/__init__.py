"""Operator sign-in helpers."""
