"""Concrete adapters implementing the interfaces in ``bookrec.interfaces``."""
