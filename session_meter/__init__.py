"""
Session Meter.

Quota metering for five-hour conversational usage sessions.
"""

__version__ = "0.1.0"
