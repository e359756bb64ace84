"""Remote API client.

Concrete implementation of the RemoteApi interface over httpx.
Bounded Context: Backend Access
"""
