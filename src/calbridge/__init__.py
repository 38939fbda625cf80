"""Bidirectional sync bridge between a calendar provider and a record registry."""
