"""
Processors: consolidation engine building blocks.
"""
