"""WakeGate — wake-on-demand gateway for a power-managed backend."""

__version__ = "0.1.0"
