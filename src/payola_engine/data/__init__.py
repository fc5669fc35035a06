"""Set up the data."""

from pathlib import Path

from pydantic_yaml import parse_yaml_file_as

from .models import FallbackLayouts, RuleBook

__all__ = ["data_path", "rule_book", "fallback_layouts"]

data_path = Path(__file__).parent

rule_book = parse_yaml_file_as(RuleBook, data_path / "rules.yaml")
fallback_layouts = parse_yaml_file_as(FallbackLayouts, data_path / "layouts.yaml")
