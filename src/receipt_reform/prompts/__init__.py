"""Prompt construction."""
