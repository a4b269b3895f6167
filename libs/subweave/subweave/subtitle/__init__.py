"""Subtitle-level algorithms: validation, retry, reconciliation, speakers."""
