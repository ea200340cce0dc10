#!/usr/bin/env python3

"""Structural comparison of declarations across snapshots."""

from ....infrastructure.logging import get_logger
from ...errors import TypeNotFoundError
from ...models.declarations import Field, TypeDeclaration, spelling
from ...models.diff import DiffStatus, EnumeratorChange, FieldChange, SnapshotDiff, TypeDiff
from ..registry import TypeRegistry

logger = get_logger(__name__)


def field_type_text(member: Field) -> str:
    """Type of a field as compared between snapshots (arrays and bit-fields included)."""
    text = spelling(member.type_ref)
    if member.array_dimensions:
        length = member.array_length
        text += f"[{length if length is not None else '?'}]"
    if member.bitfield is not None:
        width = member.bitfield_width
        text += f" : {width if width is not None else '?'}"
    return text


def _field_offset(member: Field) -> int | None:
    return member.offset if member.offset is not None else member.explicit_offset


class ModelDiffer:
    """Compares two snapshots held by one registry."""

    def __init__(self, registry: TypeRegistry):
        self.registry = registry

    def diff(self, old_snapshot: str, new_snapshot: str, qualified_name: str) -> TypeDiff:
        """
        Compare one type between two snapshots.

        Args:
            old_snapshot: Older snapshot name
            new_snapshot: Newer snapshot name
            qualified_name: Fully qualified type name

        Returns:
            TypeDiff (status ADDED/REMOVED when the type exists on one side only)

        Raises:
            TypeNotFoundError: If a snapshot is unknown or neither contains the type
        """
        old = self.registry.get(old_snapshot, qualified_name)
        new = self.registry.get(new_snapshot, qualified_name)
        if old is None and new is None:
            raise TypeNotFoundError(
                f"'{qualified_name}' is not declared in '{old_snapshot}' or '{new_snapshot}'"
            )
        return self.compare(old, new, qualified_name, old_snapshot, new_snapshot)

    def compare(
        self,
        old: TypeDeclaration | None,
        new: TypeDeclaration | None,
        qualified_name: str,
        old_snapshot: str = "old",
        new_snapshot: str = "new",
    ) -> TypeDiff:
        """Compare two declarations directly (either side may be missing)."""
        result = TypeDiff(qualified_name, old_snapshot, new_snapshot)

        if old is not None:
            result.old_kind = old.keyword
            result.old_size = old.size
            result.old_bases = [spelling(base.type_ref) for base in old.bases]
        if new is not None:
            result.new_kind = new.keyword
            result.new_size = new.size
            result.new_bases = [spelling(base.type_ref) for base in new.bases]

        if old is None:
            result.status = DiffStatus.ADDED
            if new is not None:
                result.added_fields = [member.name for member in new.fields]
                result.added_enumerators = [enumerator.name for enumerator in new.enumerators]
            return result
        if new is None:
            result.status = DiffStatus.REMOVED
            result.removed_fields = [member.name for member in old.fields]
            result.removed_enumerators = [enumerator.name for enumerator in old.enumerators]
            return result

        self._compare_fields(old, new, result)
        self._compare_enumerators(old, new, result)

        result.status = DiffStatus.UNCHANGED if result.is_empty else DiffStatus.CHANGED
        logger.debug(
            f"Diff {qualified_name} ({old_snapshot} -> {new_snapshot}): {result.status.value}, "
            f"+{len(result.added_fields)} -{len(result.removed_fields)} ~{len(result.modified_fields)}"
        )
        return result

    @staticmethod
    def _compare_fields(old: TypeDeclaration, new: TypeDeclaration, result: TypeDiff) -> None:
        # Duplicate names: the last declaration of a name wins
        old_map = {member.name: member for member in old.fields}
        new_map = {member.name: member for member in new.fields}

        result.removed_fields = [name for name in old_map if name not in new_map]
        result.added_fields = [name for name in new_map if name not in old_map]

        for name, old_field in old_map.items():
            new_field = new_map.get(name)
            if new_field is None:
                continue
            old_type = field_type_text(old_field)
            new_type = field_type_text(new_field)
            old_offset = _field_offset(old_field)
            new_offset = _field_offset(new_field)
            offset_changed = old_offset is not None and new_offset is not None and old_offset != new_offset
            if old_type != new_type or offset_changed:
                result.modified_fields.append(FieldChange(name, old_type, new_type, old_offset, new_offset))

    @staticmethod
    def _compare_enumerators(old: TypeDeclaration, new: TypeDeclaration, result: TypeDiff) -> None:
        old_map = {enumerator.name: enumerator.value for enumerator in old.enumerators}
        new_map = {enumerator.name: enumerator.value for enumerator in new.enumerators}

        result.removed_enumerators = [name for name in old_map if name not in new_map]
        result.added_enumerators = [name for name in new_map if name not in old_map]
        result.changed_enumerators = [
            EnumeratorChange(name, value, new_map[name])
            for name, value in old_map.items()
            if name in new_map and new_map[name] != value
        ]

    def diff_snapshots(self, old_snapshot: str, new_snapshot: str) -> SnapshotDiff:
        """
        Compare every type of two snapshots.

        Returns:
            SnapshotDiff listing added and removed types plus a TypeDiff per changed shared type

        Raises:
            TypeNotFoundError: If either snapshot is unknown
        """
        old_types = {decl.qualified_name: decl for decl in self.registry.all_declarations(old_snapshot)}
        new_types = {decl.qualified_name: decl for decl in self.registry.all_declarations(new_snapshot)}

        result = SnapshotDiff(old_snapshot, new_snapshot)
        result.removed_types = sorted(set(old_types) - set(new_types))
        result.added_types = sorted(set(new_types) - set(old_types))

        for name in sorted(set(old_types) & set(new_types)):
            type_diff = self.compare(old_types[name], new_types[name], name, old_snapshot, new_snapshot)
            if not type_diff.is_empty:
                result.changed_types.append(type_diff)

        logger.info(
            f"Snapshot diff {old_snapshot} -> {new_snapshot}: {len(result.added_types)} added, "
            f"{len(result.removed_types)} removed, {len(result.changed_types)} changed"
        )
        return result
