"""Citation sweep - parking citation collection for a vehicle fleet."""

__version__ = "0.1.0"
