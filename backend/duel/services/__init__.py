"""Domain services: auth tokens, stats persistence and the play engine.

Imported by HTTP routes and socket handlers, keeping transport concerns
separated from core game mechanics.
"""
