"""Response caching for the admissions portal API."""

__version__ = "1.0.0"
