"""Deferred type definitions, built-ins, root operations and the registry."""
