"""
Runs the statements of an AttributePlan on one open connection.

Per field we touch the current table first, then the revision table. Every write
is committed by itself; there is no transaction around the whole run. After each
table we write an audit line to the log, so an interrupted run shows which
fields/tables are done. Running the same replacement again is harmless, since
replacing a string that is no longer there changes nothing.

    mode              current table        revision table
    replace           update -> count      update -> count
    dry run           count                count
    dry run + ids     entity ids           count
"""

from dataclasses import dataclass
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from Drupal.Replace.plan import CURRENT, AttributePlan
from Drupal.Replace.scope import ReplacementRequest

logger = logging.getLogger(__name__)


class ExecutionFailure(Exception):
    def __init__(
        self, *, entity_type: str, field: str, family: str, completed: list, cause
    ) -> None:
        self.entity_type = entity_type
        self.field = field
        self.family = family
        self.completed = list(completed)
        self.cause = cause
        msg = f"ERROR: {entity_type}.{field} {family} table failed: {cause}"
        if self.completed:
            msg += "\nCompleted before the failure: " + ", ".join(self.completed)
        else:
            msg += "\nNothing was completed before the failure."
        super().__init__(msg)


@dataclass
class Outcome:
    field: str
    family: str
    table: str
    count: Optional[int] = None
    ids: Optional[list] = None


class Executor:
    def __init__(self, *, connection, request: ReplacementRequest) -> None:
        self.connection = connection
        self.request = request
        self.completed = []  # "node.body current", ... in order of completion

    @property
    def dialect(self) -> str:
        return self.connection.dialect.name

    def run(self, *, plan: AttributePlan) -> list:
        """
        Process both tables of one field and return an Outcome per table. Raises
        ExecutionFailure if the database chokes; earlier fields stay changed.
        """
        outcomes = []
        for family, table_name in plan.targets:
            try:
                outcome = self._run_table(
                    plan=plan, family=family, table_name=table_name
                )
            except SQLAlchemyError as e:
                self._rollback()
                logger.error(
                    "%s.%s %s table failed (%s): %s",
                    self.request.entity_type,
                    plan.attribute.name,
                    family,
                    table_name,
                    e,
                )
                raise ExecutionFailure(
                    entity_type=self.request.entity_type,
                    field=plan.attribute.name,
                    family=family,
                    completed=self.completed,
                    cause=e,
                ) from e
            done = f"{self.request.entity_type}.{plan.attribute.name} {family}"
            self.completed.append(done)
            if outcome.ids is not None:
                logger.info(
                    "%s table done: %d ids (%s)", done, len(outcome.ids), table_name
                )
            else:
                logger.info(
                    "%s table done: %d rows (%s)", done, outcome.count, table_name
                )
            outcomes.append(outcome)
        return outcomes

    #
    # private
    #

    def _run_table(
        self, *, plan: AttributePlan, family: str, table_name: str
    ) -> Outcome:
        outcome = Outcome(field=plan.attribute.name, family=family, table=table_name)
        if not self.request.dry_run:
            outcome.count = self._update(plan, table_name)
        elif self.request.show_ids and family == CURRENT:
            outcome.ids = self._ids(plan, table_name)
        else:
            outcome.count = self._count(plan, table_name)
        return outcome

    def _count(self, plan: AttributePlan, table_name: str) -> int:
        q = plan.count(
            table_name=table_name, search=self.request.search, dialect=self.dialect
        )
        logger.debug("%s", q)
        return self.connection.execute(q).scalar_one()

    def _ids(self, plan: AttributePlan, table_name: str) -> list:
        q = plan.ids(
            table_name=table_name, search=self.request.search, dialect=self.dialect
        )
        logger.debug("%s", q)
        return list(self.connection.execute(q).scalars())

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback failed: %s", e)

    def _update(self, plan: AttributePlan, table_name: str) -> int:
        q = plan.update(
            table_name=table_name,
            search=self.request.search,
            replace=self.request.replace,
            dialect=self.dialect,
        )
        logger.debug("%s", q)
        result = self.connection.execute(q)
        self.connection.commit()
        return result.rowcount
