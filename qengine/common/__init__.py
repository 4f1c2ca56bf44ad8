"""
Common Utilities

Configuration, logging, exceptions and serialization shared by the engine.
"""
