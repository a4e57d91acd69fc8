"""Call vs. report dispatch simulation package."""

__all__ = [
    "config",
    "geometry",
    "spatial_grid",
    "entities",
    "state",
    "generator",
    "scheduling",
    "call_pipeline",
    "report_pipeline",
    "self_completion",
    "metrics",
    "snapshot",
    "simulator",
    "exporter",
    "scripts",
]
