"""Pytest configuration and shared fixtures."""

import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from header_type_model.application import TypeModelAnalyzer
from header_type_model.infrastructure.config import AbiConfig
from header_type_model.infrastructure.logging import LoggerSetup


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    """Return the directory holding the sample headers."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def read_fixture(fixtures_dir: Path) -> Callable[[str], str]:
    """Return a helper that reads a sample header by relative path."""

    def _read(name: str) -> str:
        return (fixtures_dir / name).read_text(encoding="utf-8")

    return _read


@pytest.fixture
def abi() -> AbiConfig:
    """Default 64-bit ABI."""
    return AbiConfig()


@pytest.fixture
def analyzer(abi: AbiConfig) -> TypeModelAnalyzer:
    """Fresh analyzer with its own registry."""
    return TypeModelAnalyzer(abi)


@pytest.fixture
def clean_logging() -> Generator[None, None, None]:
    """Reset global logging state around a test that initializes logging."""
    LoggerSetup.reset()
    yield
    LoggerSetup.reset()


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: marks tests as integration tests (end-to-end)")
