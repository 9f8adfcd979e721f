"""CiteForge - Citation Style Language rendering engine.

This package renders bibliographic entries into citations and
bibliographies according to a pre-parsed CSL style tree.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
