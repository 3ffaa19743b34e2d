"""
Test configuration for Albus tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from error_handling import DiagnosticReporter


class OutputCollector:
  """Collects reporter output lines instead of printing them"""

  def __init__(self):
    self.lines = []

  def __call__(self, text: str) -> None:
    self.lines.extend(text.split('\n'))


@pytest.fixture
def collector():
  return OutputCollector()


@pytest.fixture
def reporter(collector):
  """Reporter whose output lands in the collector"""
  return DiagnosticReporter(output=collector)


@pytest.fixture
def examples_dir():
  """Get the examples directory path"""
  return project_root / "examples"
