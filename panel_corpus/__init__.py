"""
Panel Corpus: scrape-and-normalize pipeline for panel listings.

Collects panel records from a paginated listing and its detail pages,
normalizes them into Wide/Long datasets, and computes n-gram statistics
over the panel descriptions.
"""

__version__ = "1.0.0"
__author__ = "Panel Corpus Team"
