"""
Layer 4 — Scan Session
Per-frame pipeline and one-shot scanning session
"""
from .pipeline import MRZPipeline, ScanResult
from .session import ScanSession, SessionConfig

__all__ = ['MRZPipeline', 'ScanResult', 'ScanSession', 'SessionConfig']
