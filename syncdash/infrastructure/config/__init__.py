"""Configuration and tenancy.

Loads settings from YAML, .env and the environment, and resolves which
tenant the current operation addresses.
"""
