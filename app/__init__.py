"""Brand War Room - multi-brand e-commerce analytics API"""

__version__ = "1.0.0"
