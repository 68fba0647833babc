# api/__init__.py
"""
HTTP layer: Prometheus metrics and health endpoints.
"""

from .metrics_server import MetricsBridge, MetricsServer, create_metrics_app

__all__ = ['MetricsBridge', 'MetricsServer', 'create_metrics_app']
