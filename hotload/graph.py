"""
DependencyGraph - directed graph over projects with pruning traversals.

An edge P -> Q means "P depends on Q": Q has to be ready before P. In graph
terms Q is a child of P and P is a parent of Q; the ancestors of a node are
everything that depends on it, directly or transitively.

Two traversal orders are provided:
- child-before-parent: a node is yielded after all its dependencies. Used for
  compiling and loading.
- parent-before-child: a node is yielded after all its dependents. Used for
  unloading.

Both iterators can prune the rest of the walk with remove_ancestors(), which
drops the current node and everything depending on it. The iterators keep
their own frontier and removed-set; the graph itself is never modified while
being walked.

Node order is deterministic: whenever several nodes are ready, the one added
to the graph first is yielded first.
"""

import heapq
from collections import deque
from collections.abc import Iterable
from typing import Generic, Hashable, Optional, TypeVar

T = TypeVar("T", bound=Hashable)


class DependencyGraph(Generic[T]):
    """
    Directed graph with ordered node and edge sets.

    Usage:
        graph = DependencyGraph([a, b, c])
        graph.add_directed_edge(b, a)   # b depends on a
        for node in graph.child_before_parent_iterator():
            ...
    """

    def __init__(self, nodes: Iterable[T] = ()):
        # Dicts double as insertion-ordered sets.
        self._children: dict[T, dict[T, None]] = {}
        self._parents: dict[T, dict[T, None]] = {}
        for node in nodes:
            self.add_node(node)

    def add_node(self, node: T) -> None:
        """Add a node. Adding an existing node does nothing."""
        if node not in self._children:
            self._children[node] = {}
            self._parents[node] = {}

    @property
    def nodes(self) -> list[T]:
        """All nodes in insertion order."""
        return list(self._children)

    def __contains__(self, node: object) -> bool:
        return node in self._children

    def __len__(self) -> int:
        return len(self._children)

    def __iter__(self) -> "ParentBeforeChildIterator[T]":
        return self.parent_before_child_iterator()

    def add_directed_edge(self, src: T, dst: T) -> None:
        """
        Add the edge src -> dst (src depends on dst).

        Adding an existing edge does nothing.

        Raises:
            KeyError: If either endpoint is not a node of this graph
        """
        for node in (src, dst):
            if node not in self._children:
                raise KeyError(f"Node is not part of the graph: {node!r}")
        self._children[src][dst] = None
        self._parents[dst][src] = None

    def has_directed_edge(self, src: T, dst: T) -> bool:
        children = self._children.get(src)
        return children is not None and dst in children

    def get_children(self, node: T) -> list[T]:
        """The direct dependencies of a node."""
        return list(self._children[node])

    def get_parents(self, node: T) -> list[T]:
        """The direct dependents of a node."""
        return list(self._parents[node])

    def get_ancestors(self, node: T) -> set[T]:
        """
        Get every node with a directed path to the given node.

        The node itself is only part of the result when it lies on a cycle.
        """
        ancestors: set[T] = set()
        queue = deque(self._parents[node])
        while queue:
            parent = queue.popleft()
            if parent in ancestors:
                continue
            ancestors.add(parent)
            queue.extend(p for p in self._parents[parent] if p not in ancestors)
        return ancestors

    def get_strongly_connected_components(self) -> list[set[T]]:
        """
        Get every maximal set of mutually reachable nodes (Tarjan).

        Every node is part of exactly one component, so singletons are
        returned too. A singleton is only a cycle when the node has an edge to
        itself.
        """
        index_of: dict[T, int] = {}
        low_link: dict[T, int] = {}
        on_stack: set[T] = set()
        stack: list[T] = []
        components: list[set[T]] = []
        counter = 0

        for root in self._children:
            if root in index_of:
                continue

            # Iterative DFS; each frame is (node, iterator over its children).
            index_of[root] = low_link[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, iter(self._children[root]))]

            while work:
                node, children = work[-1]
                advanced = False
                for child in children:
                    if child not in index_of:
                        index_of[child] = low_link[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(self._children[child])))
                        advanced = True
                        break
                    if child in on_stack:
                        low_link[node] = min(low_link[node], index_of[child])
                if advanced:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    low_link[parent] = min(low_link[parent], low_link[node])

                if low_link[node] == index_of[node]:
                    component: set[T] = set()
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.add(member)
                        if member == node:
                            break
                    components.append(component)

        return components

    def child_before_parent_iterator(self) -> "ChildBeforeParentIterator[T]":
        """Iterate dependencies before the nodes that depend on them."""
        return ChildBeforeParentIterator(self)

    def parent_before_child_iterator(self) -> "ParentBeforeChildIterator[T]":
        """Iterate dependents before the nodes they depend on."""
        return ParentBeforeChildIterator(self)

    def __repr__(self) -> str:
        edges = sum(len(c) for c in self._children.values())
        return f"DependencyGraph(nodes={len(self._children)}, edges={edges})"


class _PruningIterator(Generic[T]):
    """
    Topological walk that can drop the current node's ancestors mid-walk.

    Subclasses decide which neighbours block a node (must be yielded first)
    and which neighbours a yielded node releases.
    """

    def __init__(self, graph: DependencyGraph[T]):
        self._graph = graph
        self._position = {node: i for i, node in enumerate(graph.nodes)}
        self._waiting: dict[T, int] = {}
        self._frontier: list[tuple[int, T]] = []
        self._yielded: set[T] = set()
        self._removed: set[T] = set()
        self._current: Optional[T] = None

        for node in graph.nodes:
            # Self-edges never block; cycles are reported by the caller.
            count = sum(1 for other in self._blockers(node) if other != node)
            self._waiting[node] = count
            if count == 0:
                heapq.heappush(self._frontier, (self._position[node], node))

    def _blockers(self, node: T) -> list[T]:
        raise NotImplementedError

    def _released(self, node: T) -> list[T]:
        raise NotImplementedError

    def __iter__(self) -> "_PruningIterator[T]":
        return self

    def __next__(self) -> T:
        while self._frontier:
            _, node = heapq.heappop(self._frontier)
            if node in self._removed:
                continue
            self._yielded.add(node)
            self._current = node
            for other in self._released(node):
                if other == node or other in self._removed:
                    continue
                self._waiting[other] -= 1
                if self._waiting[other] == 0:
                    heapq.heappush(self._frontier, (self._position[other], other))
            return node
        self._current = None
        raise StopIteration

    @property
    def current(self) -> Optional[T]:
        """The node returned by the last next() call."""
        return self._current

    @property
    def remaining(self) -> list[T]:
        """
        Nodes that were neither yielded nor removed.

        Non-empty after exhaustion only when nodes sit on or above a cycle.
        """
        return [
            node for node in self._graph.nodes
            if node not in self._yielded and node not in self._removed
        ]

    def remove_ancestors(self) -> list[T]:
        """
        Remove the current node and all nodes depending on it from the walk.

        Returns:
            The removed nodes, the current node first and the others in graph
            insertion order. Ancestors that were already yielded are not
            included.

        Raises:
            RuntimeError: If there is no current node or it was already removed
        """
        node = self._current
        if node is None:
            raise RuntimeError("remove_ancestors() requires a current node")
        if node in self._removed:
            raise RuntimeError(f"Node was already removed: {node!r}")

        ancestors = self._graph.get_ancestors(node)
        removed = [node]
        self._removed.add(node)
        for other in self._graph.nodes:
            if other == node or other not in ancestors:
                continue
            if other in self._yielded or other in self._removed:
                continue
            self._removed.add(other)
            removed.append(other)
        return removed


class ChildBeforeParentIterator(_PruningIterator[T]):
    """Yields a node only after all its dependencies have been yielded."""

    def _blockers(self, node: T) -> list[T]:
        return self._graph.get_children(node)

    def _released(self, node: T) -> list[T]:
        return self._graph.get_parents(node)


class ParentBeforeChildIterator(_PruningIterator[T]):
    """Yields a node only after all its dependents have been yielded."""

    def _blockers(self, node: T) -> list[T]:
        return self._graph.get_parents(node)

    def _released(self, node: T) -> list[T]:
        return self._graph.get_children(node)
