"""Dependency graph over cell addresses with cycle checks and ordering.

An edge ``A -> B`` means "A's formula reads B".  Both directions are kept:
``_dependencies`` (outgoing, what a cell reads) and ``_dependents``
(incoming, who reads a cell).  All traversals use explicit work lists so a
long chain of cells cannot exhaust the interpreter stack.
"""

from __future__ import annotations

import heapq
from collections import deque
from typing import Iterable, Iterator

from gridcalc.address import CellAddress
from gridcalc.formulas.errors import CycleError


class DependencyGraph:
    """Tracks which cells read which, for ordering recalculation."""

    __slots__ = ("_dependencies", "_dependents")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self._dependencies: dict[CellAddress, set[CellAddress]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self._dependents: dict[CellAddress, set[CellAddress]] = {}

    def __len__(self) -> int:
        """Number of edges."""
        return sum(len(targets) for targets in self._dependencies.values())

    def __contains__(self, address: object) -> bool:
        return address in self._dependencies or address in self._dependents

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_edges(self, address: CellAddress, targets: Iterable[CellAddress]) -> None:
        """Replace every outgoing edge of *address* with edges to *targets*."""
        new = set(targets)
        old = self._dependencies.pop(address, set())

        for target in old - new:
            readers = self._dependents.get(target)
            if readers is not None:
                readers.discard(address)
                if not readers:
                    del self._dependents[target]

        for target in new - old:
            self._dependents.setdefault(target, set()).add(address)

        if new:
            self._dependencies[address] = new

    def remove(self, address: CellAddress) -> None:
        """Drop all outgoing edges of *address*."""
        self.set_edges(address, ())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def dependencies_of(self, address: CellAddress) -> frozenset[CellAddress]:
        """Addresses *address* reads directly."""
        return frozenset(self._dependencies.get(address, ()))

    def direct_dependents_of(self, address: CellAddress) -> frozenset[CellAddress]:
        """Addresses that read *address* directly."""
        return frozenset(self._dependents.get(address, ()))

    def edges(self) -> Iterator[tuple[CellAddress, CellAddress]]:
        """Every edge ``(reader, read)``, sorted."""
        for source in sorted(self._dependencies):
            for target in sorted(self._dependencies[source]):
                yield source, target

    def dependents_of(self, address: CellAddress) -> set[CellAddress]:
        """Transitive closure of cells that read *address*, excluding itself."""
        found: set[CellAddress] = set()
        queue: deque[CellAddress] = deque([address])
        while queue:
            cell = queue.popleft()
            for reader in self._dependents.get(cell, ()):
                if reader not in found:
                    found.add(reader)
                    queue.append(reader)
        found.discard(address)
        return found

    def find_cycle_path(
        self, address: CellAddress, new_edges: Iterable[CellAddress]
    ) -> list[CellAddress] | None:
        """Path ``address -> ... -> address`` that *new_edges* would close.

        Searches from each new target along outgoing edges for *address*,
        before anything is committed.  Returns ``None`` when no cycle forms.
        """
        targets = sorted(set(new_edges))
        if address in targets:
            return [address, address]

        parents: dict[CellAddress, CellAddress | None] = {}
        for root in targets:
            if root in parents:
                continue
            parents[root] = None
            queue: deque[CellAddress] = deque([root])
            while queue:
                cell = queue.popleft()
                for dep in sorted(self._dependencies.get(cell, ())):
                    if dep in parents:
                        continue
                    parents[dep] = cell
                    if dep == address:
                        return [address] + self._trace(parents, address)
                    queue.append(dep)
        return None

    @staticmethod
    def _trace(
        parents: dict[CellAddress, CellAddress | None], end: CellAddress
    ) -> list[CellAddress]:
        chain = [end]
        node = parents[end]
        while node is not None:
            chain.append(node)
            node = parents[node]
        chain.reverse()
        return chain

    def would_cycle(self, address: CellAddress, new_edges: Iterable[CellAddress]) -> bool:
        """True if giving *address* the edges *new_edges* creates a cycle."""
        return self.find_cycle_path(address, new_edges) is not None

    def topological_order(self, subset: Iterable[CellAddress]) -> list[CellAddress]:
        """Order *subset* so every dependency precedes its dependents.

        Kahn's algorithm over a min-heap: among cells that are ready, the
        smallest address goes first, so the order is deterministic.

        Raises:
            CycleError: If the subgraph induced by *subset* has a cycle.
        """
        nodes = set(subset)
        in_degree: dict[CellAddress, int] = {}
        for cell in nodes:
            deps = self._dependencies.get(cell, ())
            in_degree[cell] = sum(1 for dep in deps if dep in nodes)

        ready = [cell for cell, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order: list[CellAddress] = []
        while ready:
            cell = heapq.heappop(ready)
            order.append(cell)
            for reader in self._dependents.get(cell, ()):
                if reader in in_degree:
                    in_degree[reader] -= 1
                    if in_degree[reader] == 0:
                        heapq.heappush(ready, reader)

        if len(order) != len(nodes):
            raise CycleError(nodes - set(order))
        return order
