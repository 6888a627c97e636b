"""
Core utilities for ComicSeed: logging, configuration, paths and exceptions.
"""
