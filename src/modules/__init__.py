"""Business modules for the handler loader.

Each module is self-contained with its own schemas, exceptions and
domain logic.
"""
