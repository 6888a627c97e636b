"""
Validators package.

- schema: Per-entity structural validation of raw export records
"""
