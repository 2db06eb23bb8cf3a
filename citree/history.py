"""
History tracking for tree construction.

This module provides data structures for complete traceability of:
- Every predictor tested at every node
- Test statistics, degrees of freedom, raw and adjusted p-values
- Selected vs rejected predictors
- Why each leaf stopped growing
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from .types import PredictorType


@dataclass
class PredictorEvaluation:
    """
    Evaluation record for one predictor at a node.

    Attributes:
        predictor_name: Name of the predictor variable
        predictor_type: Type of predictor (continuous, ordinal, nominal)
        statistic: Quadratic test statistic
        degrees_of_freedom: Degrees of freedom of the reference distribution
        p_value: Raw p-value
        adjusted_p_value: Bonferroni-adjusted p-value
        criterion: 1 - adjusted p-value
        was_selected: Whether this predictor was selected for splitting
    """
    predictor_name: str
    predictor_type: PredictorType
    statistic: float = 0.0
    degrees_of_freedom: int = 0
    p_value: float = 1.0
    adjusted_p_value: float = 1.0
    criterion: float = 0.0
    was_selected: bool = False


@dataclass
class NodeHistory:
    """
    Complete history of all operations at a node.

    Attributes:
        node_id: Unique identifier for the node
        depth: Depth in the tree (root = 0)
        n_observations: Number of observations at this node
        predictor_evaluations: Evaluation records for all predictors
        selected_predictor: Name of the selected predictor (or None if leaf)
        split_description: Human-readable split rule (or "" if leaf)
        improvement: SSE reduction achieved by the split
        reason_for_selection: Why this predictor was selected
        is_leaf: Whether this node is a terminal node
        leaf_reason: If leaf, why it became a leaf
    """
    node_id: int
    depth: int
    n_observations: int
    predictor_evaluations: Dict[str, PredictorEvaluation] = field(default_factory=dict)
    selected_predictor: Optional[str] = None
    split_description: str = ""
    improvement: float = 0.0
    reason_for_selection: str = ""
    is_leaf: bool = False
    leaf_reason: str = ""

    def get_summary(self) -> str:
        """Generate human-readable summary of node history."""
        lines = []
        lines.append("=" * 60)
        lines.append(f"Node {self.node_id} (depth={self.depth}, n={self.n_observations})")
        lines.append("=" * 60)

        if self.is_leaf:
            lines.append(f"TERMINAL NODE: {self.leaf_reason}")
        else:
            lines.append(f"Split on: {self.selected_predictor}")
            lines.append(f"Rule: {self.split_description}")
            lines.append(f"Reason: {self.reason_for_selection}")
            lines.append(f"SSE reduction: {self.improvement:.4f}")

        if self.predictor_evaluations:
            lines.append("")
            lines.append("Predictor Evaluations:")
            lines.append("-" * 40)

        for name, eval_rec in self.predictor_evaluations.items():
            marker = " [SELECTED]" if eval_rec.was_selected else ""
            lines.append(f"  {name} ({eval_rec.predictor_type.value}){marker}")
            lines.append(f"    Statistic: {eval_rec.statistic:.4f} (df={eval_rec.degrees_of_freedom})")
            lines.append(f"    p-value (raw): {eval_rec.p_value:.6f}")
            lines.append(f"    p-value (adjusted): {eval_rec.adjusted_p_value:.6f}")
            lines.append(f"    Criterion: {eval_rec.criterion:.6f}")

        return "\n".join(lines)

    def to_frame(self) -> pd.DataFrame:
        """Predictor evaluations at this node, one row per predictor."""
        rows = [
            {
                "predictor": rec.predictor_name,
                "type": rec.predictor_type.value,
                "statistic": rec.statistic,
                "df": rec.degrees_of_freedom,
                "p_value": rec.p_value,
                "adjusted_p_value": rec.adjusted_p_value,
                "criterion": rec.criterion,
                "selected": rec.was_selected,
            }
            for rec in self.predictor_evaluations.values()
        ]
        return pd.DataFrame(rows, columns=[
            "predictor", "type", "statistic", "df", "p_value", "adjusted_p_value", "criterion", "selected"
        ])


@dataclass
class TreeHistory:
    """
    Complete history of the entire tree construction.

    Attributes:
        node_histories: Dictionary mapping node_id to NodeHistory
        construction_order: Order in which nodes were processed
        parameters: Parameters used for tree construction
    """
    node_histories: Dict[int, NodeHistory] = field(default_factory=dict)
    construction_order: List[int] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)

    def add_node_history(self, node_history: NodeHistory):
        """Add a node history record."""
        self.node_histories[node_history.node_id] = node_history
        self.construction_order.append(node_history.node_id)

    def get_node_history(self, node_id: int) -> Optional[NodeHistory]:
        """Get history for a specific node."""
        return self.node_histories.get(node_id)

    def get_full_summary(self) -> str:
        """Generate complete summary of tree construction."""
        lines = []
        lines.append("=" * 70)
        lines.append("CONDITIONAL INFERENCE TREE CONSTRUCTION HISTORY")
        lines.append("=" * 70)
        lines.append(f"\nParameters: {self.parameters}")
        lines.append(f"Total nodes: {len(self.node_histories)}")
        lines.append("")

        for node_id in self.construction_order:
            if node_id in self.node_histories:
                lines.append(self.node_histories[node_id].get_summary())
                lines.append("")

        return "\n".join(lines)
