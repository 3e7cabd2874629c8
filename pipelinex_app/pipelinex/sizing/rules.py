"""Load runner sizing rules from YAML."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from ruamel.yaml import YAML

from pipelinex.sizing.models import SizingRules

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).resolve().parent / "default_rules.yaml"


def load_sizing_rules(path: str | Path | None = None) -> SizingRules:
    """Read a sizing rule table; the packaged defaults when no path is given."""
    rules_path = Path(path) if path else DEFAULT_RULES_PATH
    yaml = YAML(typ="safe")
    data = yaml.load(rules_path.read_text()) or {}
    rules = SizingRules.model_validate(data)
    logger.debug("Loaded %d sizing signals from %s", len(rules.signals), rules_path)
    return rules


@lru_cache(maxsize=1)
def default_sizing_rules() -> SizingRules:
    return load_sizing_rules()
