"""ficsync: deliver stories announced by email to a reading device."""

__version__ = "0.1.0"
