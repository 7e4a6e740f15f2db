"""Tempo - bounded-concurrency job processor for directory tree uploads."""

__version__ = "0.1.0"
