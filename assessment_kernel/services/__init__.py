"""Kernel services: audit log, sequences and aggregate repositories."""
