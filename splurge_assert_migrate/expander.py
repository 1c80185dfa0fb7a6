"""Expand the rule catalog into compilable template units.

Every rule is multiplied by every rewrite family and every arity
variant. Each combination becomes one ``TemplateUnit``: a small Python
module with a ``before`` and an ``after`` function sharing an annotated
signature. Units are numbered from an explicit ``ExpansionContext`` so
two runs in the same process never share names.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .engine.program import template_unit_name
from .exceptions import MigrationError, TemplateGenerationError
from .imports import ImportRecord
from .rules.catalog import CATALOG, SubstitutionRule
from .rules.families import ARITY_VARIANTS, DEFAULT_FAMILIES, ArityVariant, RewriteFamily
from .rules.shapes import Signature

if TYPE_CHECKING:
    from .engine.engine import RewriteEngine

logger = logging.getLogger(__name__)


@dataclass
class ExpansionContext:
    """Per-run unit numbering."""

    next_ordinal: int = 0
    issued: list[str] = field(default_factory=list)

    def next_name(self) -> tuple[int, str]:
        ordinal = self.next_ordinal
        self.next_ordinal += 1
        name = template_unit_name(ordinal)
        self.issued.append(name)
        return ordinal, name


@dataclass(frozen=True)
class TemplateUnit:
    """One rule expanded for one family and one arity variant.

    Attributes:
        name: Unit name in the reserved template namespace.
        ordinal: Position in expansion order, used to map rewrites back
            to their rule.
        rule: Originating rule.
        family: Family the shapes were rendered against.
        variant: Number of trailing message arguments.
        signature: Rule signature extended with the message slots.
        before: Rendered before call, e.g. ``require.equal(t, a, b, m0)``.
        after: Rendered after call, e.g. ``gassert.eq(t, b, a, m0)``.
        imports: Import entries the unit declares.
        source: Full module text handed to the engine.
    """

    name: str
    ordinal: int
    rule: SubstitutionRule
    family: RewriteFamily
    variant: ArityVariant
    signature: Signature
    before: str
    after: str
    imports: tuple[ImportRecord, ...]
    source: str


class TemplateExpander:
    """Turn substitution rules into template units.

    Args:
        families: Families every rule is expanded against.
        variants: Arity variants every rule is expanded against.
    """

    def __init__(
        self,
        families: Sequence[RewriteFamily] = DEFAULT_FAMILIES,
        variants: Sequence[ArityVariant] = ARITY_VARIANTS,
    ) -> None:
        if not families:
            raise ValueError("At least one rewrite family is required")
        if not variants:
            raise ValueError("At least one arity variant is required")
        self.families = tuple(families)
        self.variants = tuple(variants)

    def expand(self, catalog: Iterable[SubstitutionRule], context: ExpansionContext) -> list[TemplateUnit]:
        """Build one unit per (rule, family, variant), in that nesting order."""
        units: list[TemplateUnit] = []
        for rule in catalog:
            for family in self.families:
                for variant in self.variants:
                    ordinal, name = context.next_name()
                    units.append(self.render_unit(name, ordinal, rule, family, variant))
        return units

    @staticmethod
    def unit_imports(rule: SubstitutionRule, family: RewriteFamily, signature: Signature) -> tuple[ImportRecord, ...]:
        records: list[ImportRecord] = []
        if any(slot.needs_typing_any for slot in signature.slot_types()):
            records.append(ImportRecord(path="typing.Any", from_import=True))
        records.append(ImportRecord.for_module(family.source_path, family.source_alias))
        records.append(ImportRecord.for_module(family.dest_path, family.dest_alias))
        if rule.uses_helper:
            records.append(ImportRecord.for_module(family.helper_path, family.helper_alias))
        return tuple(records)

    def render_unit(
        self, name: str, ordinal: int, rule: SubstitutionRule, family: RewriteFamily, variant: ArityVariant
    ) -> TemplateUnit:
        """Render one unit's module text."""
        signature = rule.signature.extended(variant.slots())
        qualifiers = family.qualifiers()
        before = rule.before.render(qualifiers, trailing=variant.names)
        after = rule.after.render(qualifiers, trailing=variant.names)
        imports = self.unit_imports(rule, family, signature)

        stdlib = [record for record in imports if record.path.startswith("typing.")]
        third_party = [record for record in imports if record not in stdlib]
        header = [f'"""Template {name}: {rule.name} ({family.name}, {variant.count} message args)."""', ""]
        if stdlib:
            header.extend(record.render() for record in stdlib)
            header.append("")
        header.extend(record.render() for record in third_party)

        params = signature.render()
        source = "\n".join(
            [
                *header,
                "",
                "",
                f"def before({params}) -> None:",
                f"    {before}",
                "",
                "",
                f"def after({params}) -> None:",
                f"    {after}",
                "",
            ]
        )
        return TemplateUnit(
            name=name,
            ordinal=ordinal,
            rule=rule,
            family=family,
            variant=variant,
            signature=signature,
            before=before,
            after=after,
            imports=imports,
            source=source,
        )


def expand_and_register(
    engine: RewriteEngine,
    catalog: Iterable[SubstitutionRule] = CATALOG,
    families: Sequence[RewriteFamily] = DEFAULT_FAMILIES,
    variants: Sequence[ArityVariant] = ARITY_VARIANTS,
    context: ExpansionContext | None = None,
) -> tuple[int, list[TemplateUnit]]:
    """Expand ``catalog`` and register every unit with ``engine`` in ordinal order.

    Returns:
        The number of units registered and the units themselves.

    Raises:
        TemplateGenerationError: If any unit cannot be rendered or registered.
    """
    if context is None:
        context = ExpansionContext()
    try:
        units = TemplateExpander(families, variants).expand(catalog, context)
    except (ValueError, MigrationError) as e:
        raise TemplateGenerationError(f"Cannot expand rule catalog: {e}") from e

    for unit in units:
        try:
            engine.register_unit(unit.name, unit.source)
        except TemplateGenerationError:
            raise
        except Exception as e:
            raise TemplateGenerationError(
                f"Cannot register {unit.name}: {e}", unit_name=unit.name, rule_name=unit.rule.name
            ) from e
    logger.info(f"Registered {len(units)} template units")
    return len(units), units
