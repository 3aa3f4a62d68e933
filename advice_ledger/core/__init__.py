"""
Ledger core - index manager, reader and writer over a key-value store.
"""
