"""Post-rewrite import cleanup.

After all matchers ran on a file, imports of the source families that
are no longer referenced are dropped, and destination (and helper)
imports are re-aliased to the local names the rewritten calls use.
Both changes are made on one canonical ``ImportSet``, from which the
module body and the file's import list are then regenerated.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from collections.abc import Sequence

from .engine.program import TargetFile
from .imports import ImportRecord, ImportSet, rebind_references
from .rules.families import DEFAULT_FAMILIES, RewriteFamily


def _under(record: ImportRecord, path: str) -> bool:
    return record.path == path or record.path.startswith(path + ".")


def _parent_of(record: ImportRecord, path: str) -> bool:
    # ``import testify`` reaches ``testify.require`` through attribute access
    return not record.from_import and path.startswith(record.path + ".")


class ImportReconciler:
    """Fix up a rewritten file's imports for a set of rewrite families."""

    def __init__(self, families: Sequence[RewriteFamily] = DEFAULT_FAMILIES) -> None:
        self.families = tuple(families)
        self._logger = logging.getLogger(__name__)

    def _is_source(self, record: ImportRecord) -> bool:
        return any(_under(record, family.source_path) for family in self.families)

    def _is_source_parent(self, record: ImportRecord) -> bool:
        return any(_parent_of(record, family.source_path) for family in self.families)

    def _aliases(self) -> list[tuple[str, str]]:
        """``(module path, wanted alias)`` pairs for destination and helper modules."""
        wanted: dict[str, str] = {}
        for family in self.families:
            wanted.setdefault(family.dest_path, family.dest_alias)
            wanted.setdefault(family.helper_path, family.helper_alias)
        return list(wanted.items())

    def reconcile(self, target_file: TargetFile) -> int:
        """Reconcile ``target_file``'s imports in place.

        Files that import nothing from a source family are left untouched.
        A re-alias that would clash with another binding of the wanted
        name is skipped with a warning.

        Returns:
            1 when the imports changed, else 0.
        """
        import_set = ImportSet.from_module(target_file.module)
        if not import_set.find(lambda r: self._is_source(r) or (self._is_source_parent(r) and not r.is_used)):
            return 0

        for record in import_set.find(lambda r: self._is_source(r) and r.is_used):
            self._logger.warning(
                f"{target_file.path}: keeping import of {record.path}, "
                f"{record.bound_name} is still referenced by calls no rule covers"
            )
        dropped = import_set.drop(lambda r: (self._is_source(r) or self._is_source_parent(r)) and not r.is_used)

        module = target_file.module
        renamed: list[tuple[ImportRecord, ImportRecord]] = []
        for path, alias in self._aliases():
            for record in import_set.find(lambda r, p=path: r.path == p and r.binds_module):
                new_record = record.with_alias(alias)
                if new_record.same_entry(record) or any(record.same_entry(old) for old, _ in renamed):
                    continue
                rebound = rebind_references(module, record, new_record.bound_name)
                if rebound is None:
                    self._logger.warning(
                        f"{target_file.path}: not renaming {record.bound_name} to {new_record.bound_name}, "
                        f"{new_record.bound_name} is already bound to something else"
                    )
                    continue
                module = rebound
                renamed.append((record, new_record))
        for old, new in renamed:
            import_set.realias(old.same_entry, new.alias or new.natural_name)

        seen: list[ImportRecord] = []

        def duplicate(record: ImportRecord) -> bool:
            if any(record.same_entry(other) for other in seen):
                return True
            seen.append(record)
            return False

        duplicates = import_set.drop(duplicate)

        if not (dropped or renamed or duplicates):
            return 0

        target_file.set_module(import_set.apply_to(module))

        for record in dropped:
            self._logger.debug(f"{target_file.path}: dropped import {record.render()}")
        for old, new in renamed:
            self._logger.debug(f"{target_file.path}: {old.render()} -> {new.render()}")
        return 1
