"""recall - hybrid intent classification and entity extraction for a personal assistant."""

__version__ = "0.1.0"
