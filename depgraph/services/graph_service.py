"""
Graph Service: orchestrates collection, import extraction, resolution and
role classification into a bounded node/edge graph.

Public interface:
    GraphService.get_graph(project_id, db)   → GraphResponse for a project
    GraphService.build_graph(file_table)     → GraphResponse for a file table
    classify_role(path)                      → FileRole

Nothing below the collector raises for bad input: unreadable specifiers and
unresolved imports are dropped from the edge list.
"""

import logging
import posixpath
import time
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from depgraph.adapters.base import BaseRepoLoader
from depgraph.adapters.github import GitHubRepoLoader
from depgraph.config import get_settings
from depgraph.models.graph_schemas import (
    FileRole, GraphNode, GraphEdge, GraphTotals, GraphResponse,
)
from depgraph.models.repo import FileTable
from depgraph.services.import_extractor import iter_imports
from depgraph.services.path_resolver import SCRIPT_EXTENSIONS, resolve_import
from depgraph.services.project_service import ProjectService
from depgraph.services.scanner import ScannerService

logger = logging.getLogger("graph.service")
settings = get_settings()

# First match wins, top to bottom.
ROLE_RULES = (
    (FileRole.api, {"api"}),
    (FileRole.component, {"components", "component"}),
    (FileRole.page, {"pages", "app"}),
    (FileRole.utility, {"lib", "utils"}),
    (FileRole.hook, {"hooks"}),
    (FileRole.server, {"server"}),
)
PAGE_FILES = {f"page{ext}" for ext in SCRIPT_EXTENSIONS}


def classify_role(path: str) -> FileRole:
    """Role from the directory segments of `path`, case-insensitive."""
    parts = path.lower().split("/")
    folders = set(parts[:-1])
    filename = parts[-1]

    for role, segments in ROLE_RULES:
        if folders & segments:
            return role
        if role == FileRole.page and filename in PAGE_FILES:
            return role
    return FileRole.other


def node_label(path: str) -> str:
    base = posixpath.basename(path)
    for ext in SCRIPT_EXTENSIONS:
        if base.endswith(ext):
            return base[: -len(ext)]
    return base


def make_node(path: str) -> GraphNode:
    return GraphNode(
        id=path,
        label=node_label(path),
        fullPath=path,
        role=classify_role(path),
        folder=posixpath.dirname(path) or ".",
    )


class GraphService:
    """Static methods: no instance state."""

    # ── Public ───────────────────────────────────────

    @staticmethod
    async def get_graph(
        project_id: str,
        db: AsyncSession,
        loader: Optional[BaseRepoLoader] = None,
        local_root: Optional[str] = None,
    ) -> GraphResponse:
        """
        Full pipeline: lookup → collect → extract → resolve → classify.
        Raises ProjectNotFoundError when no source can be collected.
        """
        start = time.time()

        project = await ProjectService.get_project(db, project_id)
        if project is None:
            logger.info(f"[{project_id}] No project record, trying local source")

        collected = await ScannerService.collect(
            project,
            loader or GitHubRepoLoader(),
            local_root if local_root is not None else settings.LOCAL_SOURCE_ROOT,
        )

        graph = GraphService.build_graph(collected.to_table())
        graph.warning = collected.warning

        logger.info(
            f"[{project_id}] Graph built from {collected.origin.value} source in "
            f"{(time.time() - start) * 1000:.0f}ms: "
            f"{graph.total.nodes} nodes, {graph.total.edges} edges"
            + (f" (warning: {graph.warning})" if graph.warning else "")
        )
        return graph

    @staticmethod
    def build_graph(
        file_table: FileTable,
        max_nodes: Optional[int] = None,
        max_edges: Optional[int] = None,
    ) -> GraphResponse:
        """
        Nodes in first-seen order (file-table order, then import targets as
        they resolve). Edges in per-file scan order; duplicates kept.
        """
        max_nodes = settings.MAX_NODES if max_nodes is None else max_nodes
        max_edges = settings.MAX_EDGES if max_edges is None else max_edges

        nodes: Dict[str, GraphNode] = {}
        edges: List[GraphEdge] = []

        for path, content in file_table.items():
            if path not in nodes:
                nodes[path] = make_node(path)

            for specifier in iter_imports(content):
                target = resolve_import(specifier, path, file_table)
                if target is None:
                    continue
                if target not in nodes:
                    nodes[target] = make_node(target)
                edges.append(GraphEdge(source=path, target=target))

        node_list = list(nodes.values())

        if len(node_list) > max_nodes or len(edges) > max_edges:
            logger.info(
                f"Truncating graph to {max_nodes}/{max_edges} "
                f"(had {len(node_list)} nodes, {len(edges)} edges)"
            )

        return GraphResponse(
            nodes=node_list[:max_nodes],
            edges=edges[:max_edges],
            total=GraphTotals(nodes=len(node_list), edges=len(edges)),
        )
