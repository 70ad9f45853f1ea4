"""Persistence: models, engine/session helpers and the element store."""
