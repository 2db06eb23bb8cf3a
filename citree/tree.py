"""
Fitted conditional inference tree.

A Tree owns the node arena produced by TreeBuilder; node 0 is the root.
Prediction walks from the root, following each node's split, until a leaf is
reached and returns the leaf's mean response.

Routing of values a split never saw (a nominal level absent from both sides,
an ordinal category outside the declared order, a missing value) follows
``TreeConfig.unseen_category``:
- LARGER_CHILD: the child with more training records (left on ties)
- LEFT / RIGHT: always that child
- RAISE: raise DomainError
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger

from .config import PredictorConfig, TreeConfig
from .data import Dataset, as_frame
from .exceptions import DomainError
from .history import TreeHistory
from .node import Node
from .types import PredictorType, UnseenCategoryPolicy


Records = Union[pd.DataFrame, np.ndarray, Sequence[Mapping[str, Any]]]


class Tree:
    """
    Immutable fitted model. Its nodes are frozen on construction.

    Attributes:
        nodes: Node arena (node_id == position in the tuple)
        predictors: Predictor configurations seen during training
        config: Hyperparameters the tree was built with
        history: Complete construction history
    """

    def __init__(
        self,
        nodes: Sequence[Node],
        predictors: Dict[str, PredictorConfig],
        config: TreeConfig,
        history: Optional[TreeHistory] = None
    ):
        if not nodes:
            raise ValueError("A tree needs at least a root node")
        self._nodes = tuple(nodes)
        for node in self._nodes:
            node.freeze()
        self.predictors = dict(predictors)
        self.config = config
        self.history = history if history is not None else TreeHistory()
        self._positions = {
            name: {cat: i for i, cat in enumerate(cfg.ordered_categories)}
            for name, cfg in self.predictors.items()
            if cfg.ordered_categories is not None
        }

    @property
    def nodes(self) -> tuple:
        return self._nodes

    @property
    def root(self) -> Node:
        return self._nodes[0]

    @property
    def n_samples(self) -> int:
        return self.root.n_observations

    @property
    def n_splits(self) -> int:
        """Number of internal nodes."""
        return sum(1 for node in self._nodes if not node.is_leaf)

    def __len__(self) -> int:
        return len(self._nodes)

    def get_leaves(self) -> List[Node]:
        """
        Get all leaf nodes.

        Returns:
            List of leaf nodes
        """
        return [node for node in self._nodes if node.is_leaf]

    def get_depth(self) -> int:
        """
        Get actual depth of tree.

        Returns:
            Maximum depth of any node
        """
        return max(node.depth for node in self._nodes)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def _encode(self, name: str, value: Any) -> Any:
        config = self.predictors[name]
        if config.predictor_type == PredictorType.NOMINAL:
            return value
        if name in self._positions:
            return self._positions[name].get(value)
        if value is None:
            return None
        return float(value)

    def _route(self, record: Mapping[str, Any], encoded: bool = False) -> Node:
        node = self.root
        while not node.is_leaf:
            if node.split_variable not in record:
                raise ValueError(f"Record is missing predictor {node.split_variable!r}")
            raw = record[node.split_variable]
            value = raw if encoded else self._encode(node.split_variable, raw)
            goes_left = node.goes_left(value)

            if goes_left is None:
                goes_left = self._unseen_branch(node, raw)

            node = self._nodes[node.left if goes_left else node.right]
        return node

    def _unseen_branch(self, node: Node, value: Any) -> bool:
        policy = self.config.unseen_category
        if policy == UnseenCategoryPolicy.RAISE:
            raise DomainError(node.split_variable, value)

        if policy == UnseenCategoryPolicy.LEFT:
            goes_left = True
        elif policy == UnseenCategoryPolicy.RIGHT:
            goes_left = False
        else:
            left, right = self._nodes[node.left], self._nodes[node.right]
            goes_left = left.n_observations >= right.n_observations

        logger.debug(
            "Unseen value {!r} of {} at node {} routed {} ({})",
            value, node.split_variable, node.node_id, "left" if goes_left else "right", policy.value
        )
        return goes_left

    def predict_record(self, record: Mapping[str, Any]) -> float:
        """
        Predict the response of one record.

        Args:
            record: Mapping from predictor name to raw value

        Returns:
            Mean response of the leaf the record reaches
        """
        return self._route(record).value

    def apply(self, X: Records) -> np.ndarray:
        """
        Leaf reached by each record.

        Args:
            X: Predictor variables

        Returns:
            Array of leaf node ids
        """
        return np.array([self._route(record).node_id for record in _records(X)], dtype=int)

    def predict(self, X: Records) -> np.ndarray:
        """
        Predict responses for samples.

        Args:
            X: Predictor variables (DataFrame, 2D array, or sequence of mappings)

        Returns:
            Array of predicted responses (mean at leaf)
        """
        return np.array([self._route(record).value for record in _records(X)], dtype=float)

    def predict_dataset(self, dataset: Dataset) -> np.ndarray:
        """
        Predict responses for the records of an encoded Dataset.

        Args:
            dataset: Dataset encoded with the same predictor configurations

        Returns:
            Array of predicted responses (mean at leaf)
        """
        records = dataset.to_frame().to_dict("records")
        return np.array([self._route(record, encoded=True).value for record in records], dtype=float)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def variable_importance(self) -> Dict[str, float]:
        """
        SSE reduction attributed to each predictor, normalized to sum to 1.

        Returns:
            Mapping predictor -> importance (all zeros for a tree without splits)
        """
        totals = {name: 0.0 for name in self.predictors}
        for node in self._nodes:
            if not node.is_leaf:
                totals[node.split_variable] += node.improvement

        overall = sum(totals.values())
        if overall <= 0:
            return totals
        return {name: value / overall for name, value in totals.items()}

    def _describe_branch(self, node: Node, left: bool) -> str:
        name = node.split_variable
        if node.split_variable_type == PredictorType.NOMINAL:
            group = node.left_categories if left else node.right_categories
            if len(group) == 1:
                return f"{name} = {next(iter(group))}"
            return f"{name} in {sorted(group, key=repr)}"

        config = self.predictors[name]
        if config.ordered_categories is not None:
            cut = int(np.floor(node.threshold))
            group = config.ordered_categories[:cut + 1] if left else config.ordered_categories[cut + 1:]
            return f"{name} in {group}"

        return f"{name} {'<=' if left else '>'} {node.threshold:.6g}"

    def get_rule(self, node_id: int) -> str:
        """
        Get the rule that defines a node (path from root).

        Args:
            node_id: Id of the node

        Returns:
            String representation of the path
        """
        node = self._nodes[node_id]
        if node.parent is None:
            return "Root"

        rules = []
        while node.parent is not None:
            parent = self._nodes[node.parent]
            rules.append(self._describe_branch(parent, left=parent.left == node.node_id))
            node = parent

        return " AND ".join(reversed(rules))

    def get_tree_structure(self) -> Dict[str, Any]:
        """
        Get complete tree structure as dictionary.

        Returns:
            Nested dictionary representation of tree
        """
        def node_to_dict(node: Node) -> Dict[str, Any]:
            result = node.to_dict()
            result["rule"] = self.get_rule(node.node_id)
            if not node.is_leaf:
                result["children_data"] = [
                    node_to_dict(self._nodes[node.left]),
                    node_to_dict(self._nodes[node.right]),
                ]
            return result

        return {
            "parameters": self.config.to_dict(),
            "predictors": {name: cfg.predictor_type.value for name, cfg in self.predictors.items()},
            "n_nodes": len(self._nodes),
            "tree": node_to_dict(self.root),
        }

    def print_tree(self, node: Optional[Node] = None, indent: str = "") -> None:
        """
        Print tree structure to console.

        Args:
            node: Starting node (defaults to root)
            indent: Current indentation string
        """
        if node is None:
            node = self.root

        node_type = "Leaf" if node.is_leaf else "Node"
        print(f"{indent}{node_type} {node.node_id} (n={node.n_observations})")

        if node.is_leaf:
            print(f"{indent}   Mean: {node.value:.4f}")
            return

        print(f"{indent}   Split: {node.split_variable}")
        print(f"{indent}   stat={node.statistic:.2f}, p={node.p_value:.4g}, p_adj={node.adjusted_p_value:.4g}")

        for is_left, child_id in ((True, node.left), (False, node.right)):
            print(f"{indent}   ├─ {self._describe_branch(node, is_left)}")
            self.print_tree(self._nodes[child_id], indent + "   │  ")


def _records(X: Records) -> List[Mapping[str, Any]]:
    if isinstance(X, (pd.DataFrame, np.ndarray)):
        return as_frame(X).to_dict("records")
    return list(X)
