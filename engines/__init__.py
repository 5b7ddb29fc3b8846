"""
Engines package - Core modules for the Chatbot Vendor Scanner
"""
from .session_engine import SessionOrchestrator
from .judgment_engine import QualityJudgmentAdapter
from .engagement_loop import EngagementLoop, EngagementState
from .scanner import ChatbotScanner, build_scanner

__all__ = [
    'SessionOrchestrator',
    'QualityJudgmentAdapter',
    'EngagementLoop',
    'EngagementState',
    'ChatbotScanner',
    'build_scanner',
]
