"""State/store layer.

This package is the single source of truth for how inbound status
messages, optimistic command effects and predicted transitions are
merged into the local device view, plus the activity log and the
derived lockout mode.
"""
