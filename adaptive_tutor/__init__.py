"""Adaptive selection and reward engine for per-learner practice scheduling."""

__version__ = "0.1.0"
