"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that infrastructure components
must implement. Core controllers depend on these interfaces, not
concrete implementations.
"""
