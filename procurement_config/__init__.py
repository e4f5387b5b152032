"""Procurement configuration: typed schema plus YAML loader."""

from procurement_config.loader import get_default_config, load_config, parse_config
from procurement_config.schema import ProcurementConfig

__all__ = ["ProcurementConfig", "get_default_config", "load_config", "parse_config"]
