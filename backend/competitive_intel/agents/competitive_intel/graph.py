from langgraph.graph import StateGraph, START, END

from .nodes import IntelNodes
from .state import IntelState
from .timing import log_timing


def _continue_or_fail(state: IntelState) -> str:
    return "fail" if state.get("failure_reason") else "continue"


def create_intel_graph(nodes: IntelNodes) -> StateGraph:
    """
    Create the competitive intelligence pipeline graph.

    Structure:
    START -> route_category
          -> gather_evidence (providers fan out concurrently inside the node)
          -> synthesize
          -> validate_memo
          -> assemble_result
          -> END

    route_category and synthesize jump to assemble_result on failure, so an
    unsupported category never reaches a provider or the model.
    """
    log_timing("graph", "Creating competitive intel graph")

    graph = StateGraph(IntelState)

    graph.add_node("route_category", nodes.route_category)
    graph.add_node("gather_evidence", nodes.gather_evidence)
    graph.add_node("synthesize", nodes.synthesize)
    graph.add_node("validate_memo", nodes.validate_memo)
    graph.add_node("assemble_result", nodes.assemble_result)

    graph.add_edge(START, "route_category")
    graph.add_conditional_edges(
        "route_category",
        _continue_or_fail,
        {"continue": "gather_evidence", "fail": "assemble_result"},
    )
    graph.add_edge("gather_evidence", "synthesize")
    graph.add_conditional_edges(
        "synthesize",
        _continue_or_fail,
        {"continue": "validate_memo", "fail": "assemble_result"},
    )
    graph.add_edge("validate_memo", "assemble_result")
    graph.add_edge("assemble_result", END)

    return graph
