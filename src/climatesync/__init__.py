"""
climatesync - real-time environmental advisory core

Runs heuristic weather, soil, crop, irrigation, energy and hazard models
over observations for a set of locations, aggregates them into advisories,
and raises deduplicated, auto-expiring threshold alerts.
"""

__version__ = "0.1.0"

# Core API exports
from .config import ClimateSyncConfig
from .orchestrator import Orchestrator, run_analysis
from .service import ClimateSyncService

__all__ = [
    "run_analysis",
    "Orchestrator",
    "ClimateSyncService",
    "ClimateSyncConfig",
    "__version__",
]
