"""
EcoScan product aggregation pipeline.

Resolves a scanned barcode into one merged product record with packaging,
eco grade, allergens, nutrition facts and an estimated carbon footprint.

Structure:
- domain/: Business logic and domain models
- infrastructure/: External concerns (HTTP providers, storage, cache)
- application/: Use cases orchestrating domain services
- tests/: Test suite
"""

__version__ = "1.0.0"
