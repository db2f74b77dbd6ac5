"""
Backend package for the Vida Tea functions.

Holds settings, the document store abstraction (Firestore or in-memory) and
the wiring that hands a store to the HTTP layer.
"""
