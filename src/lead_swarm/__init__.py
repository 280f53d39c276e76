"""Multi-agent advisory swarm for real-estate sales leads."""

__version__ = "0.1.0"
