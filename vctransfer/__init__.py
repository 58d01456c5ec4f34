# vctransfer/__init__.py
"""
vctransfer - move the rows of one table between two PostgreSQL instances.

Two modes:
- dump/load: binary COPY of a (optionally filtered) table through a file
- transfer-names: streaming existence-check-then-insert of address names
"""

__version__ = "0.3.0"
