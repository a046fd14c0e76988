from sharetrack.core.config import (
    SharetrackConfig,
    configure_logging,
    load_config_from_env,
)

__all__ = [
    "SharetrackConfig",
    "configure_logging",
    "load_config_from_env",
]
