from __future__ import annotations
import logging
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .clock import elapsed_between, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

Direction = Literal["up", "down"]

class SpaceDirect(BaseModel):
    kind: Literal["space"] = "space"
    space_id: int

class UnderFolder(BaseModel):
    kind: Literal["folder"] = "folder"
    folder_id: int
    space_id: int

# Effective parent of a list. Storage keeps two nullable columns; callers only see this.
ContainerRef = Annotated[Union[SpaceDirect, UnderFolder], Field(discriminator="kind")]

class SpaceOut(BaseModel):
    id: int; name: str

class FolderOut(BaseModel):
    id: int; space_id: int; name: str; position: int

class ListOut(BaseModel):
    id: int; name: str; position: int
    parent: ContainerRef

    @property
    def space_id(self) -> int:
        return self.parent.space_id

    @property
    def folder_id(self) -> Optional[int]:
        return self.parent.folder_id if isinstance(self.parent, UnderFolder) else None

class TaskOut(BaseModel):
    id: int; list_id: int; title: str; done: bool
    accumulated_seconds: int = Field(ge=0)
    running_since: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self.running_since is not None

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        """Accumulated time plus the live interval, if the timer is running."""
        if self.running_since is None:
            return self.accumulated_seconds
        return self.accumulated_seconds + elapsed_between(self.running_since, now or utc_now())

class FolderNode(BaseModel):
    folder: FolderOut
    lists: List[ListOut] = Field(default_factory=list)

class SpaceNode(BaseModel):
    space: SpaceOut
    folders: List[FolderNode] = Field(default_factory=list)
    lists: List[ListOut] = Field(default_factory=list)

def to_space_out(r): return SpaceOut(id=r["id"], name=r["name"])
def to_folder_out(r): return FolderOut(id=r["id"], space_id=r["space_id"], name=r["name"], position=int(r["position"]))

def to_list_out(r):
    if r["folder_id"] is not None:
        parent = UnderFolder(folder_id=r["folder_id"], space_id=r["space_id"])
    else:
        parent = SpaceDirect(space_id=r["space_id"])
    return ListOut(id=r["id"], name=r["name"], position=int(r["position"]), parent=parent)

def to_task_out(r):
    try:
        since = parse_timestamp(r["running_since"])
    except ValueError:
        # Read as idle; the row keeps the value until stop_timer or start_timer rewrites it.
        logger.warning("Task %s has unparseable running_since=%r", r["id"], r["running_since"])
        since = None
    return TaskOut(
        id=r["id"], list_id=r["list_id"], title=r["title"], done=bool(r["done"]),
        accumulated_seconds=max(0, int(r["accumulated_seconds"] or 0)),
        running_since=since,
    )
