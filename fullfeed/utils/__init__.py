"""Shared utilities: exceptions, logging and validators."""
