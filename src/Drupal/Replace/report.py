"""
Turns Outcomes into the lines we show the operator.
"""

from Drupal.Replace.plan import CURRENT, REVISION


def format_count(n: int) -> str:
    return f"{n:,}"


class Reporter:
    def __init__(self, *, entity_type: str, dry_run: bool, show_ids: bool) -> None:
        self.entity_type = entity_type
        self.dry_run = dry_run or show_ids
        self.show_ids = show_ids
        self.totals = {CURRENT: 0, REVISION: 0}

    def lines(self, outcomes: list) -> list:
        """
        Returns lines for the outcomes of one field. With show_ids, the current table
        is reported as "node/12" lines instead of a count line.
        """
        lines = []
        for outcome in outcomes:
            if outcome.ids is not None:
                self.totals[outcome.family] += len(outcome.ids)
                for ID in outcome.ids:
                    lines.append(f"{self.entity_type}/{ID}")
                continue
            self.totals[outcome.family] += outcome.count
            verb = "Would update" if self.dry_run else "Updated"
            noun = "row" if outcome.count == 1 else "rows"
            lines.append(
                f"{verb} {format_count(outcome.count)} {noun} in {self.entity_type} "
                + f"{outcome.field} {outcome.family} table ({outcome.table})."
            )
        return lines

    def summary(self) -> str:
        revision = f"{format_count(self.totals[REVISION])} {REVISION}"
        if self.show_ids:
            return f"Total: {revision} rows"
        return f"Total: {format_count(self.totals[CURRENT])} {CURRENT}, {revision} rows"
