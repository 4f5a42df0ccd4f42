"""
What should be touched?

A ReplacementRequest says what the operator asked for: entity type, search, replace
and optional bundle and field filters. validate checks the request against the
catalog once, before anything is written. resolve turns the request into the list
of (field, bundles) pairs we actually process.

    request = ReplacementRequest(
        entity_type="node",
        search="devel.example.com",
        replace="www.example.com",
        bundles=frozenset({"page", "article"}),
    )
    validate(request=request, catalog=catalog)
    for attribute, bundles in resolve(request=request, catalog=catalog):
        ...
"""

from dataclasses import dataclass
import logging
from typing import Optional

from Drupal.Replace.catalog import Catalog

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Carries every problem found with a request, not only the first one."""

    def __init__(self, errors: list) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(self.errors))


@dataclass(frozen=True)
class ReplacementRequest:
    entity_type: str
    search: str
    replace: Optional[str]
    bundles: frozenset = frozenset()
    fields: frozenset = frozenset()
    dry_run: bool = False
    show_ids: bool = False

    def __post_init__(self) -> None:
        # listing ids never writes
        if self.show_ids and not self.dry_run:
            object.__setattr__(self, "dry_run", True)


def split_csv(value: Optional[str]) -> frozenset:
    """
    Splits a comma separated command line value into a set, e.g.
    "page, article" -> {"page", "article"}. None or "" -> empty set.
    """
    if not value:
        return frozenset()
    return frozenset(part.strip() for part in value.split(",") if part.strip())


def validate(*, request: ReplacementRequest, catalog: Catalog) -> None:
    errors = []
    if not request.search:
        errors.append("ERROR: No search string given")
    if request.replace is None:
        errors.append("ERROR: No replacement string given")

    storage = catalog.storage(request.entity_type)
    if storage is None:
        errors.append(f"ERROR: Entity type '{request.entity_type}' does not exist")
    elif storage != "sql":
        errors.append(
            f"ERROR: Entity type '{request.entity_type}' is stored in '{storage}', "
            + "only sql storage is supported"
        )
    else:
        known = set(catalog.bundles(request.entity_type))
        unknown = sorted(request.bundles - known)
        if unknown:
            errors.append(
                f"ERROR: Unknown bundle(s) for '{request.entity_type}': "
                + ", ".join(unknown)
            )

    if errors:
        raise ValidationError(errors)


def resolve(*, request: ReplacementRequest, catalog: Catalog) -> list:
    """
    Returns (AttributeDefinition, bundles) pairs in catalog order for every text
    field in scope. bundles is never empty; a field that is not present on any of the
    requested bundles is skipped.
    """
    scope = []
    seen = set()
    for attribute in catalog.attributes(request.entity_type):
        if not attribute.kind.eligible:
            continue
        if request.fields and attribute.name not in request.fields:
            continue
        seen.add(attribute.name)
        if request.bundles:
            bundles = request.bundles & attribute.bundles
            if not bundles:
                logger.info(
                    "Skipping %s.%s: not present on bundle(s) %s",
                    request.entity_type,
                    attribute.name,
                    ", ".join(sorted(request.bundles)),
                )
                continue
        else:
            bundles = attribute.bundles
            if not bundles:
                logger.info(
                    "Skipping %s.%s: not present on any bundle",
                    request.entity_type,
                    attribute.name,
                )
                continue
        scope.append((attribute, frozenset(bundles)))

    for name in sorted(request.fields - seen):
        logger.info("Skipping %s.%s: no such text field", request.entity_type, name)
    return scope
