"""Adaptive selection, reward and progression algorithms."""
