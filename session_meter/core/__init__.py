"""
Core modules for Session Meter.

This package contains the session metrics engine: window partitioning,
pricing, burn rates and quota assessment.
"""
