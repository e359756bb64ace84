"""Core Layer: the synchronization controllers and command orchestration.

Controllers depend on domain interfaces only; concrete infrastructure is
injected by the composition root in main.py.
"""
