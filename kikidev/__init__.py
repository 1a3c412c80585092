"""In-memory simulation of the unreliable kiki buffer device and a retrying client API."""

__version__ = "0.1.0"

__all__ = ["api", "buffers", "device", "protocol"]