"""Codecs and metadata for PostgreSQL wire values: OIDs, columns, errors, timestamps, bytea, ranges and hstore."""

__version__ = "0.1.0"
__all__ = ["oid", "fielddesc", "pgerror", "encode", "ranges", "hstore"]