"""Infrastructure Layer.

Contains concrete implementations of the domain ports (store, clock,
Remote API client, console UI) and the configuration/logging setup.
"""
