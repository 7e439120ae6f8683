"""State layer.

This package owns the in-memory mapping table and the bookkeeping for the
external source it is loaded from. Every change to either goes through the
reload coordinator in :mod:`pymapstore.store`.
"""
