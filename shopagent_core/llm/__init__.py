"""
Language-model collaborator: Gemini client, page snapshot and analyzer.
"""

from .gemini import GeminiClient, extract_text
from .snapshot import PageSnapshot, build_page_snapshot
from .analyzer import AnalysisMode, LLMDecision, PageAnalyzer

__all__ = [
    'GeminiClient', 'extract_text',
    'PageSnapshot', 'build_page_snapshot',
    'AnalysisMode', 'LLMDecision', 'PageAnalyzer',
]
