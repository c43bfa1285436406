"""State layer.

Owns the current/baseline configuration, the change predicate used for
modification highlighting, and the events published to observers.
"""
