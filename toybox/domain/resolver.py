# toybox/domain/resolver.py
from typing import List, Optional, Set, Tuple

from loguru import logger

from .models import Package
from .repos import SnapshotRepo
from ..core.errors import ValidationError


class PackageResolver:
    """Turns (id, optional revision) into a concrete package snapshot."""

    def __init__(self, repo: SnapshotRepo):
        self.repo = repo

    def resolve_revision(self, pid: int, rev: Optional[int] = None) -> int:
        if rev is None or rev < 1:
            rev = self.repo.latest_revision(pid)
            logger.debug("package {} resolved to latest revision {}", pid, rev)
        return rev

    def resolve(self, pid: int, rev: Optional[int] = None) -> Package:
        return self.repo.fetch_snapshot(pid, self.resolve_revision(pid, rev))

    def resolve_dependencies(self, pkg: Package) -> List[Package]:
        """
        Every snapshot reachable through pinned includes, each listed once in
        depth-first, first-seen order. A cycle raises ValidationError.
        """
        ordered: List[Package] = []
        done: Set[Tuple[int, int]] = set()

        def visit(p: Package, path: Tuple[Tuple[int, int], ...]):
            for inc in p.includes:
                key = (inc.id, inc.revision)
                if key in path:
                    chain = " -> ".join(f"{i}r{r}" for i, r in path + (key,))
                    raise ValidationError(f"include cycle: {chain}")
                if key in done:
                    continue
                dep = self.repo.fetch_snapshot(inc.id, inc.revision)
                done.add(key)
                ordered.append(dep)
                visit(dep, path + (key,))

        visit(pkg, ((pkg.id, pkg.revision),))
        return ordered
