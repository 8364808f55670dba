"""Zone <-> cell assignment state with a linear undo stack.

``AssignmentStore`` keeps two indexes in step: zone id -> ``Assignment``
(the owning group and the set of cell ids) and cell id -> zone id. A cell
belongs to at most one zone; ``assign`` refuses cells owned by a different
zone and raises ``CellConflictError`` without touching any state.

Every successful ``assign`` pushes the zone id onto the undo stack, even
when it replaces an existing assignment for the same zone. ``undo_last``
pops one entry and unassigns that zone; entries are never merged, so a
zone assigned twice needs two undos (the second is a no-op if the zone is
already gone). There is no redo.

``export_assignments`` / ``import_assignments`` convert to and from the
plain ``{zone_id: {"groupId": ..., "cellIds": [...]}}`` structure used in
session files. Import validates the whole structure first and only then
replaces the current state, so a rejected import changes nothing. Zone and
group ids are not checked against any project.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


class CellConflictError(ValueError):
    """Raised when an assignment would take cells owned by another zone."""

    def __init__(self, zone_id: str, conflicts: dict[int, str]):
        self.zone_id = zone_id
        self.conflicts = conflicts
        owners = ", ".join(
            f"#{cid} -> {owner}" for cid, owner in sorted(conflicts.items())
        )
        super().__init__(
            f"cannot assign zone {zone_id!r}: cells already assigned ({owners})"
        )


class MalformedAssignmentsError(ValueError):
    """Raised when import data does not have the assignment structure."""


@dataclass(frozen=True)
class Assignment:
    group_id: str
    cell_ids: frozenset[int]

    def sorted_cell_ids(self) -> list[int]:
        return sorted(self.cell_ids)

    @property
    def anchor_cell_id(self) -> int:
        """Median of the sorted cell ids, used to place the zone label."""
        ids = self.sorted_cell_ids()
        return ids[len(ids) // 2]

    def to_dict(self) -> dict:
        return {"groupId": self.group_id, "cellIds": self.sorted_cell_ids()}


def _is_cell_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_assignments(data) -> dict[str, Assignment]:
    """Validate an exported assignment structure and build ``Assignment``s.

    Entries with an empty cell list are dropped. Raises
    ``MalformedAssignmentsError`` on wrong types or when two zones claim
    the same cell.
    """
    if not isinstance(data, dict):
        raise MalformedAssignmentsError(
            f"assignments must be an object, got {type(data).__name__}"
        )
    parsed: dict[str, Assignment] = {}
    owner: dict[int, str] = {}
    for zone_id, info in data.items():
        if not isinstance(info, dict):
            raise MalformedAssignmentsError(
                f"assignment for zone {zone_id!r} must be an object"
            )
        # groupId is required: a zone without one would be drawn with no
        # group and exported back without the key. Rejects the whole file.
        group_id = info.get("groupId")
        if not isinstance(group_id, str):
            raise MalformedAssignmentsError(
                f"assignment for zone {zone_id!r} has no string groupId"
            )
        cell_ids = info.get("cellIds")
        if not isinstance(cell_ids, list) or not all(
            _is_cell_id(c) for c in cell_ids
        ):
            raise MalformedAssignmentsError(
                f"assignment for zone {zone_id!r} needs an integer cellIds list"
            )
        if not cell_ids:
            continue
        for cid in cell_ids:
            prev = owner.get(cid)
            if prev is not None and prev != zone_id:
                raise MalformedAssignmentsError(
                    f"cell #{cid} is assigned to both {prev!r} and {zone_id!r}"
                )
            owner[cid] = zone_id
        parsed[zone_id] = Assignment(group_id, frozenset(cell_ids))
    return parsed


class AssignmentStore:
    def __init__(self):
        self._assignments: dict[str, Assignment] = {}
        self._cell_to_zone: dict[int, str] = {}
        self._undo_stack: list[str] = []

    # -- mutation --

    def assign(
        self, zone_id: str, group_id: str, cell_ids: Iterable[int]
    ) -> bool:
        """Assign ``cell_ids`` to ``zone_id``, replacing any previous cells.

        Returns False (and changes nothing) for an empty cell set.
        """
        cells = frozenset(cell_ids)
        if not cells:
            return False
        conflicts = {
            cid: self._cell_to_zone[cid]
            for cid in cells
            if self._cell_to_zone.get(cid, zone_id) != zone_id
        }
        if conflicts:
            raise CellConflictError(zone_id, conflicts)

        self.unassign(zone_id)
        self._assignments[zone_id] = Assignment(group_id, cells)
        for cid in cells:
            self._cell_to_zone[cid] = zone_id
        self._undo_stack.append(zone_id)
        return True

    def unassign(self, zone_id: str) -> bool:
        """Remove a zone's assignment. The undo stack is left alone."""
        assignment = self._assignments.pop(zone_id, None)
        if assignment is None:
            return False
        for cid in assignment.cell_ids:
            del self._cell_to_zone[cid]
        return True

    def undo_last(self) -> str | None:
        if not self._undo_stack:
            return None
        zone_id = self._undo_stack.pop()
        self.unassign(zone_id)
        return zone_id

    def reset_all(self) -> None:
        self._assignments.clear()
        self._cell_to_zone.clear()
        self._undo_stack.clear()

    # -- queries --

    def is_assigned(self, zone_id: str) -> bool:
        return zone_id in self._assignments

    def get_assignment(self, zone_id: str) -> Assignment | None:
        return self._assignments.get(zone_id)

    def get_zone_for_cell(self, cell_id: int) -> str | None:
        return self._cell_to_zone.get(cell_id)

    def is_cell_assigned(self, cell_id: int) -> bool:
        return cell_id in self._cell_to_zone

    def items(self) -> list[tuple[str, Assignment]]:
        return list(self._assignments.items())

    @property
    def assigned_count(self) -> int:
        return len(self._assignments)

    @property
    def used_cell_count(self) -> int:
        return len(self._cell_to_zone)

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    # -- serialization --

    def export_assignments(self) -> dict:
        return {zid: a.to_dict() for zid, a in self._assignments.items()}

    def import_assignments(self, data) -> None:
        """Replace all state with ``data``; the undo stack ends up empty."""
        self.load(parse_assignments(data))

    def load(self, assignments: dict[str, Assignment]) -> None:
        """Replace all state with already-validated assignments."""
        self.reset_all()
        for zone_id, assignment in assignments.items():
            self._assignments[zone_id] = assignment
            for cid in assignment.cell_ids:
                self._cell_to_zone[cid] = zone_id
