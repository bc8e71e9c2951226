"""
Central metric registry - single source of truth for measurement metadata.

This module provides:
- YAML-based configuration loading and validation
- MetricDefinition dataclass for per-kind display data and alert thresholds
- Read-only lookup by storage tag

YAML access is encapsulated here - no other module should read metrics.yaml
directly. The registry describes kinds; it does not create them. The record
classes in meditrack.models.health_record check at import time that the
registry covers exactly their closed set of tags.

Usage:
    from meditrack.core.metric_registry import get_metric, list_metrics

    bp = get_metric("BP")
    bp.threshold("high_systolic")  # 140.0
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


# =============================================================================
# METRIC DEFINITION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class MetricDefinition:
    """
    Immutable definition for one measurement kind.

    Attributes:
        tag: Storage tag (flat-file kindTag and SQLite `type` column)
        display_name: Human-readable name
        unit: Measurement unit (e.g., "mg/dL", "mmHg")
        fields: Ordered payload field names
        thresholds: Alert cut-offs as (name, value) pairs
        alerts: Alert messages as (level, message) pairs
    """
    tag: str
    display_name: str
    unit: str
    fields: Tuple[str, ...]
    thresholds: Tuple[Tuple[str, float], ...] = ()
    alerts: Tuple[Tuple[str, str], ...] = ()

    def threshold(self, name: str) -> float:
        """
        Get a named alert threshold.

        Raises:
            KeyError: If the threshold is not defined for this metric
        """
        for key, value in self.thresholds:
            if key == name:
                return value
        raise KeyError(f"Metric '{self.tag}' has no threshold '{name}'")

    def alert_message(self, level: str) -> Optional[str]:
        """Get the alert message for a level ("high" / "low"), if any."""
        for key, message in self.alerts:
            if key == level:
                return message
        return None

    @property
    def arity(self) -> int:
        """Number of numeric fields stored for this kind."""
        return len(self.fields)


# =============================================================================
# YAML CONFIGURATION LOADING & VALIDATION
# =============================================================================

def _get_config_path() -> Path:
    """Get the path to the metrics configuration file."""
    return Path(__file__).parent / 'metrics.yaml'


def _load_yaml_config() -> Dict[str, Any]:
    """
    Load and parse the YAML configuration file.

    Raises:
        FileNotFoundError: If metrics.yaml is not found
        yaml.YAMLError: If YAML parsing fails
    """
    config_path = _get_config_path()
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("Metrics config file not found", extra={'path': str(config_path)})
        raise
    except yaml.YAMLError as e:
        logger.error("Failed to parse metrics config", extra={'path': str(config_path), 'error': str(e)})
        raise


def _validate_metric_entry(raw: Dict[str, Any], index: int) -> None:
    """
    Validate a single metric entry from YAML.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    for field in ('tag', 'display_name', 'fields'):
        if field not in raw:
            raise ValueError(f"Metric at index {index} is missing required field: '{field}'")

    tag = raw['tag']
    if not isinstance(tag, str) or not tag or any(ch.isspace() for ch in tag) or '|' in tag:
        raise ValueError(f"Metric at index {index} has invalid tag: {tag!r}")

    fields = raw['fields']
    if not isinstance(fields, list) or not fields:
        raise ValueError(f"Metric '{tag}' must declare at least one field")

    for name, value in (raw.get('thresholds') or {}).items():
        try:
            float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Metric '{tag}' has non-numeric threshold '{name}': {value!r}")


def _parse_metric_entry(raw: Dict[str, Any]) -> MetricDefinition:
    """Parse a single metric entry from YAML into a MetricDefinition."""
    thresholds = raw.get('thresholds') or {}
    alerts = raw.get('alerts') or {}
    return MetricDefinition(
        tag=raw['tag'],
        display_name=raw['display_name'],
        unit=raw.get('unit', ''),
        fields=tuple(raw['fields']),
        thresholds=tuple((str(k), float(v)) for k, v in thresholds.items()),
        alerts=tuple((str(k), str(v)) for k, v in alerts.items()),
    )


@lru_cache(maxsize=1)
def _load_registry() -> Tuple[MetricDefinition, ...]:
    """
    Load and cache the metric registry from YAML.

    Cached so the YAML file is read exactly once per process.
    """
    config = _load_yaml_config()
    metrics_raw = config.get('metrics', [])

    definitions: List[MetricDefinition] = []
    seen = set()
    for i, raw in enumerate(metrics_raw):
        _validate_metric_entry(raw, i)
        metric = _parse_metric_entry(raw)
        if metric.tag in seen:
            raise ValueError(f"Duplicate metric tag: '{metric.tag}'")
        seen.add(metric.tag)
        definitions.append(metric)

    logger.debug("Metric registry loaded", extra={'tags': sorted(seen)})
    return tuple(definitions)


# =============================================================================
# PUBLIC API - METRIC ACCESS
# =============================================================================

def get_metric(tag: str) -> MetricDefinition:
    """
    Get metric definition by storage tag.

    Tags are exact and case-sensitive; they are what the backends store.

    Raises:
        KeyError: If the tag is not in the registry
    """
    for metric in _load_registry():
        if metric.tag == tag:
            return metric
    raise KeyError(f"Unknown metric tag: '{tag}'")


def list_metrics() -> Dict[str, MetricDefinition]:
    """
    List all metric definitions.

    Returns:
        Dictionary mapping tags to their definitions, in file order
    """
    return {m.tag: m for m in _load_registry()}
