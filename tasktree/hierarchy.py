from __future__ import annotations
import logging
from typing import List, Optional, get_args

from sqlalchemy import select, insert, update, delete, and_, or_, Table
from sqlalchemy.engine import Connection, RowMapping
from sqlalchemy.sql.elements import ColumnElement

from .base import StoreBase, require_name
from .db import spaces, folders, lists, folder_siblings, list_siblings, next_position, renumber
from .errors import NotFound, ValidationFailure
from .models import (
    Direction, SpaceOut, FolderOut, ListOut, FolderNode, SpaceNode,
    to_space_out, to_folder_out, to_list_out,
)

logger = logging.getLogger(__name__)

def _is_up(direction: str) -> bool:
    if direction not in get_args(Direction):
        raise ValidationFailure(f"Invalid direction {direction!r}; expected 'up' or 'down'")
    return direction == "up"

def swap_with_neighbor(conn: Connection, table: Table, row: RowMapping,
                       siblings: ColumnElement[bool], up: bool) -> bool:
    """Swap `row`'s position with the adjacent sibling in (position, id) order.

    Returns False at either end of the group.
    """
    pos, ident = table.c.position, table.c.id
    if up:
        cond = or_(pos < row["position"], and_(pos == row["position"], ident < row["id"]))
        order = (pos.desc(), ident.desc())
    else:
        cond = or_(pos > row["position"], and_(pos == row["position"], ident > row["id"]))
        order = (pos.asc(), ident.asc())
    nb = conn.execute(select(ident, pos).where(siblings, cond).order_by(*order).limit(1)).first()
    if nb is None:
        return False
    mine, theirs = row["position"], nb.position
    if mine == theirs:
        # Tied positions: compact the group once so a swap is visible.
        renumber(conn, table, where=siblings)
        mine = conn.execute(select(pos).where(ident == row["id"])).scalar_one()
        theirs = conn.execute(select(pos).where(ident == nb.id)).scalar_one()
    conn.execute(update(table).where(ident == row["id"]).values(position=theirs))
    conn.execute(update(table).where(ident == nb.id).values(position=mine))
    return True

class HierarchyStore(StoreBase):
    """Spaces, folders and lists: creation, rename, cascade delete, move, reorder."""

    # --- reads ---

    def get_spaces(self) -> List[SpaceOut]:
        with self._read() as conn:
            rows = conn.execute(select(spaces).order_by(spaces.c.id.desc())).mappings().all()
        return [to_space_out(r) for r in rows]

    def get_space(self, space_id: int) -> SpaceOut:
        with self._read() as conn:
            return to_space_out(self._space_row(conn, space_id))

    def get_folders(self, space_id: int) -> List[FolderOut]:
        with self._read() as conn:
            self._space_row(conn, space_id)
            rows = conn.execute(
                select(folders).where(folder_siblings(space_id)).order_by(folders.c.position, folders.c.id)
            ).mappings().all()
        return [to_folder_out(r) for r in rows]

    def get_folder(self, folder_id: int) -> FolderOut:
        with self._read() as conn:
            return to_folder_out(self._folder_row(conn, folder_id))

    def get_space_lists(self, space_id: int) -> List[ListOut]:
        """Lists sitting directly in the space (not inside a folder)."""
        with self._read() as conn:
            self._space_row(conn, space_id)
            rows = self._sibling_lists(conn, list_siblings(space_id, None))
        return [to_list_out(r) for r in rows]

    def get_folder_lists(self, folder_id: int) -> List[ListOut]:
        with self._read() as conn:
            f = self._folder_row(conn, folder_id)
            rows = self._sibling_lists(conn, list_siblings(f["space_id"], folder_id))
        return [to_list_out(r) for r in rows]

    def get_lists_in_space(self, space_id: int) -> List[ListOut]:
        """Every list under the space, direct or inside one of its folders."""
        with self._read() as conn:
            self._space_row(conn, space_id)
            rows = self._sibling_lists(conn, lists.c.space_id == space_id)
        return [to_list_out(r) for r in rows]

    def get_list(self, list_id: int) -> ListOut:
        with self._read() as conn:
            return to_list_out(self._list_row(conn, list_id))

    def get_tree(self) -> List[SpaceNode]:
        with self._read() as conn:
            space_rows = conn.execute(select(spaces).order_by(spaces.c.id.desc())).mappings().all()
            folder_rows = conn.execute(
                select(folders).order_by(folders.c.position, folders.c.id)
            ).mappings().all()
            list_rows = conn.execute(select(lists).order_by(lists.c.position, lists.c.id)).mappings().all()

        nodes = {r["id"]: SpaceNode(space=to_space_out(r)) for r in space_rows}
        folder_nodes = {}
        for r in folder_rows:
            fn = FolderNode(folder=to_folder_out(r))
            folder_nodes[r["id"]] = fn
            if r["space_id"] in nodes:
                nodes[r["space_id"]].folders.append(fn)
        for r in list_rows:
            if r["folder_id"] is not None:
                if r["folder_id"] in folder_nodes:
                    folder_nodes[r["folder_id"]].lists.append(to_list_out(r))
            elif r["space_id"] in nodes:
                nodes[r["space_id"]].lists.append(to_list_out(r))
        return list(nodes.values())

    @staticmethod
    def _sibling_lists(conn: Connection, where: ColumnElement[bool]):
        return conn.execute(select(lists).where(where).order_by(lists.c.position, lists.c.id)).mappings().all()

    # --- create / rename ---

    def add_space(self, name: str) -> SpaceOut:
        require_name(name)
        with self._tx() as conn:
            row = conn.execute(insert(spaces).values(name=name).returning(spaces)).mappings().one()
        logger.debug("Space added id=%s", row["id"])
        return to_space_out(row)

    def add_folder(self, space_id: int, name: str) -> FolderOut:
        require_name(name)
        with self._tx() as conn:
            self._space_row(conn, space_id)
            row = conn.execute(insert(folders).values(
                space_id=space_id, name=name,
                position=next_position(conn, folders, folder_siblings(space_id)),
            ).returning(folders)).mappings().one()
        logger.debug("Folder added id=%s space=%s", row["id"], space_id)
        return to_folder_out(row)

    def add_list_to_space(self, space_id: int, name: str) -> ListOut:
        require_name(name)
        with self._tx() as conn:
            self._space_row(conn, space_id)
            row = conn.execute(insert(lists).values(
                space_id=space_id, folder_id=None, name=name,
                position=next_position(conn, lists, list_siblings(space_id, None)),
            ).returning(lists)).mappings().one()
        logger.debug("List added id=%s space=%s", row["id"], space_id)
        return to_list_out(row)

    def add_list_to_folder(self, folder_id: int, name: str) -> ListOut:
        require_name(name)
        with self._tx() as conn:
            f = self._folder_row(conn, folder_id)
            row = conn.execute(insert(lists).values(
                space_id=f["space_id"], folder_id=folder_id, name=name,
                position=next_position(conn, lists, list_siblings(f["space_id"], folder_id)),
            ).returning(lists)).mappings().one()
        logger.debug("List added id=%s folder=%s", row["id"], folder_id)
        return to_list_out(row)

    def _rename(self, table: Table, ident: int, name: str, kind: str) -> RowMapping:
        require_name(name)
        with self._tx() as conn:
            row = conn.execute(
                update(table).where(table.c.id == ident).values(name=name).returning(table)
            ).mappings().first()
        if row is None:
            raise NotFound(kind, ident)
        return row

    def rename_space(self, space_id: int, name: str) -> SpaceOut:
        return to_space_out(self._rename(spaces, space_id, name, "Space"))

    def rename_folder(self, folder_id: int, name: str) -> FolderOut:
        return to_folder_out(self._rename(folders, folder_id, name, "Folder"))

    def rename_list(self, list_id: int, name: str) -> ListOut:
        return to_list_out(self._rename(lists, list_id, name, "List"))

    # --- delete (children go through ON DELETE CASCADE) ---

    def delete_space(self, space_id: int) -> List[int]:
        """Delete the space and everything under it; returns the ids of removed lists."""
        with self._tx() as conn:
            self._space_row(conn, space_id)
            removed = conn.execute(
                select(lists.c.id).where(lists.c.space_id == space_id).order_by(lists.c.id)
            ).scalars().all()
            conn.execute(delete(spaces).where(spaces.c.id == space_id))
        logger.debug("Space deleted id=%s lists=%s", space_id, removed)
        return list(removed)

    def delete_folder(self, folder_id: int) -> List[int]:
        """Delete the folder with its lists and tasks; returns the ids of removed lists."""
        with self._tx() as conn:
            self._folder_row(conn, folder_id)
            removed = conn.execute(
                select(lists.c.id).where(lists.c.folder_id == folder_id).order_by(lists.c.id)
            ).scalars().all()
            conn.execute(delete(folders).where(folders.c.id == folder_id))
        logger.debug("Folder deleted id=%s lists=%s", folder_id, removed)
        return list(removed)

    def delete_list(self, list_id: int) -> None:
        with self._tx() as conn:
            res = conn.execute(delete(lists).where(lists.c.id == list_id))
            if res.rowcount == 0:
                raise NotFound("List", list_id)
        logger.debug("List deleted id=%s", list_id)

    # --- move ---

    def move_folder(self, folder_id: int, new_space_id: int) -> FolderOut:
        with self._tx() as conn:
            f = self._folder_row(conn, folder_id)
            self._space_row(conn, new_space_id)
            if f["space_id"] == new_space_id:
                return to_folder_out(f)
            row = conn.execute(update(folders).where(folders.c.id == folder_id).values(
                space_id=new_space_id,
                position=next_position(conn, folders, folder_siblings(new_space_id)),
            ).returning(folders)).mappings().one()
            conn.execute(update(lists).where(lists.c.folder_id == folder_id).values(space_id=new_space_id))
        logger.debug("Folder %s moved to space %s", folder_id, new_space_id)
        return to_folder_out(row)

    def move_list_to_space(self, list_id: int, space_id: int) -> ListOut:
        with self._tx() as conn:
            L = self._list_row(conn, list_id)
            self._space_row(conn, space_id)
            if L["folder_id"] is None and L["space_id"] == space_id:
                return to_list_out(L)
            row = self._relocate_list(conn, list_id, space_id, None)
        logger.debug("List %s moved to space %s", list_id, space_id)
        return to_list_out(row)

    def move_list_to_folder(self, list_id: int, folder_id: int) -> ListOut:
        with self._tx() as conn:
            L = self._list_row(conn, list_id)
            f = self._folder_row(conn, folder_id)
            if L["folder_id"] == folder_id and L["space_id"] == f["space_id"]:
                return to_list_out(L)
            row = self._relocate_list(conn, list_id, f["space_id"], folder_id)
        logger.debug("List %s moved to folder %s", list_id, folder_id)
        return to_list_out(row)

    @staticmethod
    def _relocate_list(conn: Connection, list_id: int, space_id: int, folder_id: Optional[int]) -> RowMapping:
        return conn.execute(update(lists).where(lists.c.id == list_id).values(
            space_id=space_id, folder_id=folder_id,
            position=next_position(conn, lists, list_siblings(space_id, folder_id)),
        ).returning(lists)).mappings().one()

    # --- reorder ---

    def reorder_folder(self, folder_id: int, direction: Direction) -> bool:
        """Move the folder one step up/down among its siblings; False at the ends."""
        up = _is_up(direction)
        with self._tx() as conn:
            f = self._folder_row(conn, folder_id)
            return swap_with_neighbor(conn, folders, f, folder_siblings(f["space_id"]), up)

    def reorder_list(self, list_id: int, direction: Direction) -> bool:
        up = _is_up(direction)
        with self._tx() as conn:
            L = self._list_row(conn, list_id)
            return swap_with_neighbor(conn, lists, L, list_siblings(L["space_id"], L["folder_id"]), up)
