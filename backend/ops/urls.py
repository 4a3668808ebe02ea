"""
Probe and scrape endpoints, mounted outside /api/.

No authentication here; restrict /_health/ and /_metrics/ at the
ingress in production.
"""
from django.urls import path

from ops import health
from ops.metrics import MetricsView

app_name = "ops"

urlpatterns = [
    path("live", health.LivenessView.as_view(), name="live"),
    path("ready", health.ReadinessView.as_view(), name="ready"),
    path("full", health.FullHealthView.as_view(), name="full"),
]

metrics_patterns = [
    path("", MetricsView.as_view(), name="metrics"),
]
