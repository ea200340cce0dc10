"""Header Type Model - parse reverse-engineered C++ type declarations into a checkable, diffable model."""

from .application import AnalysisResult, TypeModelAnalyzer
from .infrastructure.config import AbiConfig, Config
from .main import main

__all__ = ["AbiConfig", "AnalysisResult", "Config", "TypeModelAnalyzer", "main"]
