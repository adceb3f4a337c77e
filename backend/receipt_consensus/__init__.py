"""
Receipt Consensus: multi-frame receipt consolidation engine.
"""
__version__ = "1.0.0"
