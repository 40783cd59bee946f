"""govlens: delegation integrity and analytics for token-weighted governance."""

__version__ = "0.1.0"

from .errors import GovLensError
from .governance import EngineConfig, GovernanceAnalyticsEngine, load_registries

__all__ = ["GovLensError", "EngineConfig", "GovernanceAnalyticsEngine", "load_registries", "__version__"]
