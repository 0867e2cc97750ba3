"""State layer.

This package is the single source of truth for how the HTTP base snapshot
and the UDP overlay are held and merged into the published weather state.
"""
