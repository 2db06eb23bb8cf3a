"""
Tree induction.

Each pending node goes through

    Pending -> VariableSelected -> Split -> (two new pending children)
    Pending -> Leaf (at any step before the split)

Stopping Rules:
- Maximum depth: a node at depth max_depth is a leaf
- Minimum size: a node with fewer than 2 × min_node_size records is a leaf
- Pure node: a node with a constant response is a leaf
- Significance: no predictor reaches criterion > min_criterion
- Admissibility: no binary split leaves min_node_size records on both sides

Nodes are kept in an arena and grown from an explicit stack instead of by
recursion, so depth does not touch the interpreter's recursion limit.
"""

from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from .config import PredictorConfig, TreeConfig
from .data import Dataset
from .exceptions import EmptyNodeError
from .history import NodeHistory, TreeHistory
from .node import Node
from .selection import select_variable
from .splitting import BinarySplit, find_split, sum_of_squares
from .tree import Tree


class TreeBuilder:
    """
    Builds a Tree from a Dataset for one hyperparameter configuration.

    Parameters:
        config: Hyperparameter configuration (validated on construction)
    """

    def __init__(self, config: Optional[TreeConfig] = None):
        self.config = config if config is not None else TreeConfig()

    def build(self, dataset: Dataset) -> Tree:
        """
        Grow a tree on every record of ``dataset``.

        Args:
            dataset: Encoded training data

        Returns:
            The fitted Tree

        Raises:
            EmptyNodeError: If the dataset is empty or a split breaks the partition invariant
        """
        n = len(dataset)
        if n == 0:
            raise EmptyNodeError("Cannot build a tree from zero records")

        history = TreeHistory(parameters=self.config.to_dict())
        candidates = list(dataset.predictors.values())
        nodes: List[Node] = []

        root = self._new_node(nodes, dataset, np.arange(n), depth=0, parent=None, position=1)
        pending = [root.node_id]

        while pending:
            node = nodes[pending.pop()]
            split = self._grow(dataset, candidates, node, history)
            if split is None:
                continue

            left = self._new_node(
                nodes, dataset, split.left_indices,
                depth=node.depth + 1, parent=node.node_id, position=2 * node.position
            )
            right = self._new_node(
                nodes, dataset, split.right_indices,
                depth=node.depth + 1, parent=node.node_id, position=2 * node.position + 1
            )
            node.left, node.right = left.node_id, right.node_id

            # Left subtree is grown first
            pending.append(right.node_id)
            pending.append(left.node_id)

        tree = Tree(nodes=nodes, predictors=dataset.predictors, config=self.config, history=history)
        logger.debug(
            "Built tree on {} records: {} nodes, {} splits, depth {}",
            n, len(nodes), tree.n_splits, tree.get_depth()
        )
        return tree

    @staticmethod
    def _new_node(
        nodes: List[Node],
        dataset: Dataset,
        indices: np.ndarray,
        depth: int,
        parent: Optional[int],
        position: int
    ) -> Node:
        y = dataset.response[indices]
        node = Node(
            node_id=len(nodes),
            depth=depth,
            indices=indices,
            position=position,
            value=float(y.mean()),
            impurity=sum_of_squares(y),
            parent=parent,
        )
        nodes.append(node)
        return node

    def _check_stopping_conditions(self, node: Node, y: np.ndarray) -> Optional[str]:
        """
        Check if node should be a leaf before any test is run.

        Args:
            node: The node to check
            y: Response values of the node

        Returns:
            Reason for stopping, or None if should continue
        """
        if node.depth >= self.config.max_depth:
            return f"Maximum depth ({self.config.max_depth}) reached"

        if node.n_observations < 2 * self.config.min_node_size:
            return (
                f"Node size ({node.n_observations}) < 2 x min_node_size "
                f"({2 * self.config.min_node_size})"
            )

        if np.all(y == y[0]):
            return "Node is pure (constant response)"

        return None

    def _grow(
        self,
        dataset: Dataset,
        candidates: Sequence[PredictorConfig],
        node: Node,
        history: TreeHistory
    ) -> Optional[BinarySplit]:
        """
        Decide whether a pending node splits, and fill in its split fields if so.

        Returns:
            The split to apply, or None if the node is a leaf
        """
        if node.n_observations == 0:
            raise EmptyNodeError(f"Node {node.node_id} holds zero records")

        node_history = NodeHistory(
            node_id=node.node_id,
            depth=node.depth,
            n_observations=node.n_observations
        )
        node.history = node_history
        history.add_node_history(node_history)

        y = dataset.response[node.indices]

        stop_reason = self._check_stopping_conditions(node, y)
        if stop_reason:
            return self._make_leaf(node, stop_reason)

        columns = {name: column[node.indices] for name, column in dataset.columns.items()}
        variable = select_variable(columns, y, candidates, self.config, node.position, node_history)

        if variable is None:
            return self._make_leaf(node, f"No significant predictor (criterion <= {self.config.min_criterion})")

        split = find_split(
            columns[variable.name], y, node.indices,
            variable.name, variable.predictor_type,
            self.config.min_node_size, self.config.max_nominal_levels
        )

        if split is None:
            return self._make_leaf(
                node, f"No binary split of {variable.name} leaves {self.config.min_node_size} records per child"
            )

        n_left, n_right = len(split.left_indices), len(split.right_indices)
        if n_left == 0 or n_right == 0 or n_left + n_right != node.n_observations:
            raise EmptyNodeError(
                f"Split of node {node.node_id} on {variable.name} produced children of sizes "
                f"{n_left} and {n_right} from {node.n_observations} records"
            )

        node.is_leaf = False
        node.split_variable = variable.name
        node.split_variable_type = variable.predictor_type
        node.threshold = split.threshold
        node.left_categories = split.left_categories
        node.right_categories = split.right_categories
        node.statistic = variable.statistic
        node.p_value = variable.p_value
        node.adjusted_p_value = variable.adjusted_p_value
        node.criterion = variable.criterion
        node.improvement = split.improvement

        node_history.selected_predictor = variable.name
        node_history.split_description = _describe_split(split)
        node_history.improvement = split.improvement
        node_history.reason_for_selection = f"Lowest adjusted p-value: {variable.adjusted_p_value:.6g}"

        logger.debug(
            "Node {} (depth {}, n={}): split on {} ({}), criterion {:.6f}, SSE reduction {:.4f}",
            node.node_id, node.depth, node.n_observations, variable.name,
            node_history.split_description, variable.criterion, split.improvement
        )
        return split

    @staticmethod
    def _make_leaf(node: Node, reason: str) -> None:
        node.history.is_leaf = True
        node.history.leaf_reason = reason
        logger.debug("Node {} (depth {}, n={}) is a leaf: {}", node.node_id, node.depth, node.n_observations, reason)
        return None


def _describe_split(split: BinarySplit) -> str:
    if split.left_categories is not None:
        left = sorted(split.left_categories, key=repr)
        right = sorted(split.right_categories, key=repr)
        return f"{split.variable} in {left} | {right}"
    return f"{split.variable} <= {split.threshold:.6g}"
