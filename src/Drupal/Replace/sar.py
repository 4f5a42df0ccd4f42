"""
    sar: search and replace a literal string in the text fields of one entity type.

    Looks at the current field tables and the revision tables, e.g. for node/body
    node__body and node_revision__body, and replaces in the value column and, for
    text with summary, the summary column as well.

    sr = SearchReplace(conf_fn="replace.toml")
    request = ReplacementRequest(
        entity_type="node", search="devel.example.com", replace="www.example.com"
    )
    sr.run(request=request, confirm=lambda: True)

    One field after the other, current table before revision table. Nothing is
    written in dry run mode. Without dry run, confirm is asked once, after the request
    has been validated and before the first write.
"""

import logging
from typing import Callable, Optional

from Drupal.Replace.baseApp import BaseApp
from Drupal.Replace.execute import Executor
from Drupal.Replace.plan import plan
from Drupal.Replace.report import Reporter
from Drupal.Replace.scope import ReplacementRequest, resolve, validate

logger = logging.getLogger(__name__)


class SearchReplace(BaseApp):
    def run(
        self,
        *,
        request: ReplacementRequest,
        confirm: Optional[Callable[[], bool]] = None,
    ) -> Optional[list]:
        """
        Returns all Outcomes of the run, or None if the operator declined. Raises
        ValidationError before anything is touched, ExecutionFailure if a statement
        fails half way.
        """
        try:
            with self.engine.connect() as conn:
                return self._run(connection=conn, request=request, confirm=confirm)
        finally:
            if self.own_engine:
                self.engine.dispose()

    #
    # private
    #

    def _run(
        self, *, connection, request: ReplacementRequest, confirm
    ) -> Optional[list]:
        catalog = self.catalog(connection=connection)
        mapping = self.mapping()
        validate(request=request, catalog=catalog)

        if not request.dry_run and confirm is not None and not confirm():
            logger.info("Declined; nothing changed")
            return None

        logger.info(
            "Replacing '%s' with '%s' in %s%s",
            request.search,
            request.replace,
            request.entity_type,
            " (dry run)" if request.dry_run else "",
        )
        executor = Executor(connection=connection, request=request)
        reporter = Reporter(
            entity_type=request.entity_type,
            dry_run=request.dry_run,
            show_ids=request.show_ids,
        )
        outcomes = []
        for attribute, bundles in resolve(request=request, catalog=catalog):
            location = mapping.location(
                entity_type=request.entity_type, attribute=attribute
            )
            aplan = plan(attribute=attribute, location=location, bundles=bundles)
            logger.info(
                "* %s.%s on %s",
                request.entity_type,
                attribute.name,
                ", ".join(sorted(bundles)),
            )
            result = executor.run(plan=aplan)
            for line in reporter.lines(result):
                print(line)
            outcomes.extend(result)
        print(reporter.summary())
        return outcomes
