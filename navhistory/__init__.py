"""
navhistory - Browse and analyze a local navigation-history database.

Provides filtered, sorted, paginated history listings and a small overview
of visit statistics, served through a local web API and a CLI:
  navhistory serve  - local dashboard API
  navhistory list   - page through history from the terminal
  navhistory stats  - totals and top sites
"""

__version__ = "0.3.0"


__all__ = [
    "__version__",
]
