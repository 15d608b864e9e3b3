"""
mkdocs-swiftdoc — Swift API Documentation for MkDocs.

Reads the output of SourceKitten, merges extensions into the types they
extend, and renders the resulting declaration tree as browsable API
reference pages with a documentation coverage report.
"""

__version__ = "0.3.0"
