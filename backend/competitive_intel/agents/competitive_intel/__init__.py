"""
Competitive Intelligence Agent

Evidence gathering, memo synthesis and claim grounding as a LangGraph
pipeline.
"""

from .engine import CompetitiveIntelEngine
from .graph import create_intel_graph
from .state import IntelState

__all__ = ["CompetitiveIntelEngine", "create_intel_graph", "IntelState"]
