from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel

# Canonical path key → file content, in collection order
FileTable = Dict[str, str]


@dataclass(frozen=True)
class SourceFile:
    path: str       # posix, relative, no leading slash
    content: str


class SourceOrigin(str, Enum):
    remote = "remote"
    local = "local"


@dataclass
class CollectedSources:
    """Output of one collector pass."""
    files: List[SourceFile]
    origin: SourceOrigin
    warning: Optional[str] = None

    def to_table(self) -> FileTable:
        table: FileTable = {}
        for f in self.files:
            table[f.path] = f.content
        return table


class ProjectCreate(BaseModel):
    name: str
    githubUrl: Optional[str] = None
    githubToken: Optional[str] = None


class ProjectOut(BaseModel):
    id: str
    name: str
    githubUrl: Optional[str] = None
    createdAt: Optional[datetime] = None
