"""Well-known label keys and names used across the collector."""

UNKNOWN = "unknown"

# Node topology labels: canonical key first, deprecated fallback second
INSTANCE_TYPE_LABELS = ("node.kubernetes.io/instance-type", "beta.kubernetes.io/instance-type")
REGION_LABELS = ("topology.kubernetes.io/region", "failure-domain.beta.kubernetes.io/region")
ZONE_LABELS = ("topology.kubernetes.io/zone", "failure-domain.beta.kubernetes.io/zone")

# Istio
PROXY_CONTAINER_NAME = "istio-proxy"
INJECTION_LABEL = "istio-injection"
INJECTION_ENABLED = "enabled"
REVISION_LABEL = "istio.io/rev"
WEBHOOK_NAME_SUFFIX = "istio.io"

# metrics.k8s.io
METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"

GIB = 1024 ** 3
