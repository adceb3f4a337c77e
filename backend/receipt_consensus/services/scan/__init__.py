"""
Scan services: session driver, background frame channel and registry.
"""
from .session import ScanEvent, ScanProgress, ScanResult, ScanSession
from .frame_channel import FrameChannel
from .registry import SessionRegistry

__all__ = [
    "ScanEvent", "ScanProgress", "ScanResult", "ScanSession",
    "FrameChannel", "SessionRegistry",
]
