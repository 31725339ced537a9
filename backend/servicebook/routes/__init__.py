# backend/servicebook/routes/__init__.py
# Versioned API routers are mounted under settings.api_prefix; the metrics
# endpoint stays unversioned.
from . import (
    appointments as appointments,
    availability as availability,
    prometheus as prometheus,
)
