"""querywatch: evaluates query checks and notifies on state changes."""

__version__ = "0.1.0"
