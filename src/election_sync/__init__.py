"""Election data sync engine — ordered multi-source acquisition with single-flight tracking."""

__version__ = "0.1.0"
