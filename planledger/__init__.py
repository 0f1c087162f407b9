"""
planledger

Event-sourced tracking of an engineering-document tree. Filesystem changes
are recorded as immutable events in a SQLite event log and folded into
queryable projections of files, master files and parts.
"""

__version__ = "0.1.0"
