"""Course registry."""
