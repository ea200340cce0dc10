#!/usr/bin/env python3

"""Application layer: batch orchestration."""

from .analyzer import AnalysisResult, TypeModelAnalyzer, collect_header_files

__all__ = ["AnalysisResult", "TypeModelAnalyzer", "collect_header_files"]
