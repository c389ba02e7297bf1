"""overdose_dashboard package initializer.

This package contains the data pipeline and vote tally used by the Shiny
application: CSV tokenizing, monthly aggregation, series projection,
plotting helpers and the shared vote counter.  See individual module
docstrings for details.
"""
