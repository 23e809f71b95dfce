"""
Core modules for the collector event store.

This package contains query construction, summary reduction,
execution decoding and logging setup.
"""
