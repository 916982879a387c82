"""Command implementations for :mod:`lockstep`."""
