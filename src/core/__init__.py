"""Core domain package for beeper-pulse.

Core contains diffing, classification, status aggregation and fan-out
decisions without any HTTP or file-specific code, keeping the business
logic portable.
"""
