"""Liveness challenge service."""
