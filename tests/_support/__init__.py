"""Shared helpers for the binstore test suite."""
