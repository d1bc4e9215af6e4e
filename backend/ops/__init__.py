"""Ops: structured lifecycle events on the ``ops_events`` logger."""
