"""
Integration tests for the costume switch engine.

Streams tokens through the full lifecycle: buffering, heuristic matching,
scoring, name resolution, the cooldown gate and the host switch handler.
"""
