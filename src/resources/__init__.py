"""Factories for the add-on's dependent resources.

Each module builds the desired manifest of one dependent resource as a plain
dict ready for ``ClusterStore.create``. Factories are pure: no I/O, no
globals, deterministic for the same inputs.
"""
