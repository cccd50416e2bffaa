"""
Evaluation Pipeline Graph.

Builds the LangGraph StateGraph for evaluating a single change.
"""

from langgraph.graph import END, START, StateGraph

from prscore.services.evaluation.context import Ctx
from prscore.services.evaluation.nodes import build_context, classify, judge
from prscore.services.evaluation.state import EvaluationState

# 1. Initialize Graph with context schema
workflow = StateGraph(EvaluationState, context_schema=Ctx)

# 2. Add Nodes
workflow.add_node("classify", classify)
workflow.add_node("build_context", build_context)
workflow.add_node("judge", judge)

# 3. Add Edges
workflow.add_edge(START, "classify")
workflow.add_edge("classify", "build_context")
workflow.add_edge("build_context", "judge")
workflow.add_edge("judge", END)

# 4. Compile
evaluation_graph = workflow.compile()
