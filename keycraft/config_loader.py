#!/usr/bin/env python3
"""
Configuration loader for keycraft.

Reads a YAML file holding corpus settings, metric weights, target loads,
optimiser parameters and named layout definitions. Each caller owns its
loader; nothing is shared between instances.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from keycraft.layout import SplitLayout
from keycraft.targets import TargetLoads
from keycraft.weights import Weights

DEFAULT_CONFIG_PATH = "config.yaml"

_OPTIMISER_PARAM_KEYS = (
    'neighbourhood_size', 'l0', 'l_max', 'stagnation_limit', 'tabu_min', 'tabu_max',
    'p0', 'pattern_weight', 'column_weight', 'random_weight', 'recency_weight',
    'top_k_problematic', 'report_interval',
)


class ConfigLoader:
    """Handles loading and querying of the YAML configuration file."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        """
        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        self._config_cache: Optional[Dict[str, Any]] = None

    def load_config(self) -> Dict[str, Any]:
        """
        Load the YAML configuration file.

        Returns:
            Full configuration dictionary

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            ValueError: If YAML parsing fails or the top level is not a mapping
        """
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML configuration {self.config_path}: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValueError(f"Configuration {self.config_path} must be a mapping at the top level")

        self._config_cache = config
        return config

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.load_config().get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Configuration section '{name}' must be a mapping")
        return section

    def resolve_data_path(self, filename: str, kind: str) -> Path:
        """
        Resolve a relative data file against common.data_directories[kind].

        Absolute paths, and paths that already exist, are returned unchanged.
        A relative data directory is taken relative to the configuration file.
        """
        path = Path(filename)
        if path.is_absolute() or path.exists():
            return path
        directories = self._section('common').get('data_directories', {}) or {}
        base = directories.get(kind)
        if base is None:
            return path
        base = Path(base)
        if not base.is_absolute():
            base = self.config_path.parent / base
        return base / path

    def get_corpus_settings(self) -> Dict[str, Any]:
        """Corpus settings with defaults: file, coverage, force_reload."""
        settings = {'file': None, 'coverage': 98.0, 'force_reload': False}
        settings.update(self._section('corpus'))
        if settings['file']:
            settings['file'] = str(self.resolve_data_path(settings['file'], 'corpus'))
        return settings

    def get_weights(self) -> Weights:
        """
        Raises:
            ValueError: On unknown metric names or non-numeric weights
        """
        return Weights.from_mapping(self._section('weights'))

    def get_target_loads(self) -> TargetLoads:
        return TargetLoads.from_mapping(self._section('targets'))

    def get_optimiser_settings(self) -> Dict[str, Any]:
        """Run settings: generations, time_minutes, seed."""
        settings = {'generations': 1000, 'time_minutes': 5.0, 'seed': 0}
        section = self._section('optimiser')
        for key in settings:
            if key in section:
                settings[key] = section[key]
        return settings

    def get_bls_param_overrides(self) -> Dict[str, Any]:
        """
        Optimiser parameters set in the configuration.

        Raises:
            ValueError: On an unknown parameter name
        """
        params = self._section('optimiser').get('params') or {}
        unknown = sorted(set(params) - set(_OPTIMISER_PARAM_KEYS))
        if unknown:
            raise ValueError(f"Unknown optimiser parameters: {unknown}")
        return dict(params)

    def get_layout_names(self) -> List[str]:
        return list(self._section('layouts').keys())

    def _layout_entry(self, name: str) -> Dict[str, Any]:
        layouts = self._section('layouts')
        if name not in layouts:
            raise ValueError(
                f"Layout '{name}' not found in configuration. "
                f"Available layouts: {list(layouts.keys())}"
            )
        return layouts[name] or {}

    def get_layout(self, name: str) -> SplitLayout:
        """
        Raises:
            ValueError: If the layout is missing or malformed
        """
        entry = self._layout_entry(name)
        rows = entry.get('rows')
        if not rows:
            raise ValueError(f"Layout '{name}' has no rows")
        return SplitLayout.from_rows(name, entry.get('type', 'rowstag'), rows)

    def get_layouts(self, names: Optional[List[str]] = None) -> List[SplitLayout]:
        return [self.get_layout(name) for name in (names or self.get_layout_names())]

    def get_pin_rows(self, name: str) -> Optional[List[str]]:
        """Pin grid for a layout, or None if the layout defines none."""
        return self._layout_entry(name).get('pins')

    def get_output_settings(self) -> Dict[str, Any]:
        settings = {'precision': 3, 'metrics': 'basic'}
        settings.update(self._section('output'))
        return settings
