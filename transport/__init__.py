"""Boundary layer: HTTP API and push channel."""
