"""promsight: safe PromQL execution and service discovery for Prometheus and Mimir."""

__version__ = "0.1.0"
