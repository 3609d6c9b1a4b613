"""
Lightweight DAG executor (no external dependencies).

Used to sequence pipeline stages whose ordering is a precondition, such as
reslicing a label map strictly before the volume that composites it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple


@dataclass
class DAGNode:
    """A single step in a processing pipeline."""
    name:        str
    fn:          Callable[[dict], Any]
    depends_on:  Tuple[str, ...] = field(default_factory=tuple)


class SimpleDAGExecutor:
    """
    Topologically-sorted pipeline runner.

    Usage::

        dag = SimpleDAGExecutor()
        dag.add(DAGNode("load",             load_fn,     depends_on=()))
        dag.add(DAGNode("reslice_labelmap", label_fn,    depends_on=("load",)))
        dag.add(DAGNode("reslice",          reslice_fn,  depends_on=("load", "reslice_labelmap")))
        results = dag.run(progress_callback)

    Each ``fn`` receives a dict of ``{node_name: result}`` for all nodes it
    depends on.  The return value is stored in the results dict under its own
    name and forwarded to dependent nodes.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, DAGNode] = {}

    def add(self, node: DAGNode) -> "SimpleDAGExecutor":
        self._nodes[node.name] = node
        return self

    @property
    def node_names(self) -> Tuple[str, ...]:
        return tuple(self._nodes)

    def order(self) -> list[str]:
        """Execution order; raises on unknown dependencies and cycles."""
        done:     set[str]  = set()
        visiting: set[str]  = set()
        order:    list[str] = []

        def dfs(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                raise ValueError(f"DAG contains a cycle through '{name}'")
            visiting.add(name)
            for dep in self._nodes[name].depends_on:
                if dep not in self._nodes:
                    raise KeyError(f"DAG node '{name}' depends on unknown node '{dep}'")
                dfs(dep)
            visiting.discard(name)
            done.add(name)
            order.append(name)

        for name in self._nodes:
            dfs(name)
        return order

    def run(
        self,
        progress: Optional[Callable[[int, str], None]] = None,
    ) -> dict:
        order    = self.order()
        results  = {}
        total    = len(order)
        for i, name in enumerate(order):
            node    = self._nodes[name]
            inputs  = {dep: results[dep] for dep in node.depends_on}
            if progress:
                progress(int(100 * i / total), f"Running: {name}")
            results[name] = node.fn(inputs)
        if progress:
            progress(100, "Pipeline complete")
        return results
