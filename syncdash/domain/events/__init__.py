"""Domain Event definitions.

Represents significant occurrences in the synchronization layer that
observers (logging, tests, the CLI) might react to.
"""
