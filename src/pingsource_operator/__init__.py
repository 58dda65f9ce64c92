"""PingSource operator: reconciles PingSources into receive adapter deployments."""

__version__ = "0.1.0"
