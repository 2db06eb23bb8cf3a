"""
Tree node representation.

Nodes live in an arena (a tuple owned by the Tree) and refer to each other by
integer id. A node contains:
- Subset of training data (record indices)
- Mean response, used as the prediction at leaves
- Split information (if not a leaf)
- Ids of its parent and its two children
"""

from dataclasses import FrozenInstanceError, dataclass, field
from typing import Any, Dict, FrozenSet, Optional

import numpy as np

from .history import NodeHistory
from .types import PredictorType


@dataclass(eq=False)
class Node:
    """
    A node in the conditional inference tree.

    Attributes:
        node_id: Index of this node in the arena
        depth: Depth in the tree (root = 0)
        position: Heap position (root = 1, children of p are 2p and 2p + 1)
        indices: Indices of training records belonging to this node
        value: Mean response of the node's records
        impurity: Sum of squared errors around value
        n_observations: Total number of records
        parent: Id of the parent node (None for root)
        is_leaf: Whether this is a terminal node

        # Split information (if not leaf)
        split_variable: Name of variable used for splitting
        split_variable_type: Type of the split variable
        threshold: Cut point (left: value <= threshold) for continuous/ordinal splits
        left_categories: Levels routed left by a nominal split
        right_categories: Levels routed right by a nominal split
        statistic: Test statistic of the split variable
        p_value: Raw p-value of the split variable
        adjusted_p_value: Bonferroni-adjusted p-value
        criterion: 1 - adjusted p-value
        improvement: SSE reduction of the split
        left: Id of the left child
        right: Id of the right child

        # History
        history: Complete history of operations at this node

    Nodes are built mutable by TreeBuilder and frozen when the owning Tree is
    created; after that, assigning a field raises FrozenInstanceError and the
    index array is read-only.
    """
    node_id: int
    depth: int
    indices: np.ndarray
    position: int = 1
    value: float = 0.0
    impurity: float = 0.0
    n_observations: int = 0
    parent: Optional[int] = None
    is_leaf: bool = True

    # Split information
    split_variable: Optional[str] = None
    split_variable_type: Optional[PredictorType] = None
    threshold: Optional[float] = None
    left_categories: Optional[FrozenSet] = None
    right_categories: Optional[FrozenSet] = None
    statistic: float = 0.0
    p_value: float = 1.0
    adjusted_p_value: float = 1.0
    criterion: float = 0.0
    improvement: float = 0.0
    left: Optional[int] = None
    right: Optional[int] = None

    # History
    history: Optional[NodeHistory] = field(default=None, repr=False)
    _frozen: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        """Initialize computed fields."""
        self.n_observations = len(self.indices)

    def __setattr__(self, name: str, value: Any) -> None:
        if self._frozen:
            raise FrozenInstanceError(f"Node {self.node_id} belongs to a fitted tree; cannot assign {name!r}")
        super().__setattr__(name, value)

    def freeze(self) -> None:
        """Make the node and its index array read-only."""
        self.indices.setflags(write=False)
        object.__setattr__(self, "_frozen", True)

    def goes_left(self, value: Any) -> Optional[bool]:
        """
        Route an encoded value through this node's split.

        Args:
            value: Encoded value of the split variable

        Returns:
            True for left, False for right, None if the split never saw the value
        """
        if self.is_leaf:
            raise ValueError(f"Node {self.node_id} is a leaf")

        if self.split_variable_type == PredictorType.NOMINAL:
            if value in self.left_categories:
                return True
            if value in self.right_categories:
                return False
            return None

        if value is None or np.isnan(value):
            return None
        return bool(value <= self.threshold)

    def get_summary(self) -> str:
        """
        Generate human-readable summary of this node.

        Returns:
            Formatted string describing the node
        """
        lines = []

        node_type = "LEAF" if self.is_leaf else "INTERNAL"
        lines.append(f"Node {self.node_id} [{node_type}] (n={self.n_observations}, depth={self.depth})")
        lines.append(f"  Mean response: {self.value:.4f}")
        lines.append(f"  SSE: {self.impurity:.4f}")

        if not self.is_leaf:
            type_name = self.split_variable_type.value if self.split_variable_type else "unknown"
            lines.append(f"  Split on: {self.split_variable} ({type_name})")
            lines.append(f"  statistic = {self.statistic:.4f}")
            lines.append(f"  p-value (raw) = {self.p_value:.6f}")
            lines.append(f"  p-value (adjusted) = {self.adjusted_p_value:.6f}")
            lines.append(f"  criterion = {self.criterion:.6f}")
            lines.append(f"  SSE reduction = {self.improvement:.4f}")
            if self.left_categories is not None:
                lines.append(f"  Left: {set(self.left_categories)}  Right: {set(self.right_categories)}")
            else:
                lines.append(f"  Threshold: {self.threshold:.6g}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert node to dictionary representation.

        Returns:
            Dictionary containing all node information
        """
        result = {
            "node_id": self.node_id,
            "parent": self.parent,
            "depth": self.depth,
            "n_observations": self.n_observations,
            "is_leaf": self.is_leaf,
            "value": self.value,
            "impurity": self.impurity,
        }

        if not self.is_leaf:
            result.update({
                "split_variable": self.split_variable,
                "split_variable_type": self.split_variable_type.value if self.split_variable_type else None,
                "threshold": self.threshold,
                "left_categories": sorted(self.left_categories, key=repr) if self.left_categories else None,
                "right_categories": sorted(self.right_categories, key=repr) if self.right_categories else None,
                "statistic": self.statistic,
                "p_value": self.p_value,
                "adjusted_p_value": self.adjusted_p_value,
                "criterion": self.criterion,
                "improvement": self.improvement,
                "children": [self.left, self.right],
            })

        return result
