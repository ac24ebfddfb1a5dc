"""Configuration parsing helpers shared across packages."""

from kb_common.config.env import parse_bool_env, parse_csv

__all__ = ["parse_bool_env", "parse_csv"]
