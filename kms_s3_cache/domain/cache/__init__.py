"""
Cache Domain Module

Value objects and interfaces for the memoizing retrieval pipeline.
"""
