"""Credential store backends."""
