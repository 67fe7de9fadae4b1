"""Retention and compaction engine for timestamped result records."""
