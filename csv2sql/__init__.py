"""csv2sql: bulk-load delimited text into a SQL table with bounded concurrency."""

__version__ = "0.1.0"
