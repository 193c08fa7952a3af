"""Adapters that drive a NestedTracer from third-party callback systems.

Each adapter lives in its own module and imports its framework lazily,
so ``import nestrace`` never requires an optional extra.
"""
