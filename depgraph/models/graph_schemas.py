"""
Pydantic response schemas for the graph API.
"""

import enum
from typing import List, Optional
from pydantic import BaseModel


class FileRole(str, enum.Enum):
    api = "api"
    component = "component"
    page = "page"
    utility = "utility"
    hook = "hook"
    server = "server"
    other = "other"


class GraphNode(BaseModel):
    id: str              # canonical path key
    label: str           # basename without script extension
    fullPath: str
    role: FileRole
    folder: str


class GraphEdge(BaseModel):
    source: str          # importer
    target: str          # imported file


class GraphTotals(BaseModel):
    nodes: int
    edges: int


class GraphResponse(BaseModel):
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    total: GraphTotals   # counts before truncation
    warning: Optional[str] = None
