"""wsus-groomer - rule-based grooming of WSUS update catalogs."""

__version__ = "0.3.0"
