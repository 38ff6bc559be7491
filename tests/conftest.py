"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from avastscan.catalog.loader import load_catalog_from_string
from avastscan.catalog.models import Catalog
from avastscan.config import ScanConfig

SCENARIO_CATALOG = r"""
name: scenario
rules:
  - id: avast-auth-001
    category: Authentication
    severity: critical
    message: Hardcoded password literal
    languages: ["*"]
    match:
      regex: 'password\s*=\s*[''"]'
"""


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def override_rules_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "override_rules.yaml"


@pytest.fixture
def duplicate_rules_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "duplicate_rules.yaml"


@pytest.fixture
def scenario_catalog() -> Catalog:
    return load_catalog_from_string(SCENARIO_CATALOG, name="scenario")


@pytest.fixture
def config() -> ScanConfig:
    return ScanConfig(output_format="human", jobs=2)
