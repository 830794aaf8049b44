#!/usr/bin/env python3
"""Pricing service main configuration

Combines all sub-configs into the settings object the service is built from.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .pricing_config import PricingConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class ServiceSettings:
    """Main configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False
    default_host: str = "0.0.0.0"

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)

    @classmethod
    def from_env(cls) -> 'ServiceSettings':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            default_host=os.getenv("HOST", "0.0.0.0"),

            # Load sub-configs
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            pricing=PricingConfig.from_env(),
        )
