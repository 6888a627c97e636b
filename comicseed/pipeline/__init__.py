"""
Seeding pipeline package.

Modules, in execution order:
- loader: Source file discovery and parsing
- extractors: Ordered extraction strategies for loose record shapes
- duplicate_detector: Exact and fuzzy duplicate detection
- image_downloader / image_deduplicator / storage: Asset handling
- entity_resolver: Natural key → surrogate ID maps
- phases: One function per entity phase
- report: Execution report generation
- seed: Top-level orchestration (run_seed)
- cli: Click command group
"""
