"""Bulk search and replace for text fields stored in SQL tables"""

__version__ = "0.1.0"
import argparse

from sqlalchemy.exc import SQLAlchemyError

from Drupal.Replace.baseApp import ConfigError
from Drupal.Replace.execute import ExecutionFailure
from Drupal.Replace.log import init_log
from Drupal.Replace.sar import SearchReplace
from Drupal.Replace.scope import ReplacementRequest, ValidationError, split_csv


def ask(question: str) -> bool:
    try:
        answer = input(f"{question} (y/n): ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def confirm_twice() -> bool:
    """Both answers have to be yes before anything is written."""
    if not ask("Have you made a backup of the database?"):
        return False
    return ask("This changes content in place. Continue?")


def replacer(argv=None) -> None:
    parser = argparse.ArgumentParser(
        description="Replace a literal string in all text fields of an entity type, "
        + "in current and revision tables."
    )
    parser.add_argument("entity_type", help="entity type, e.g. node")
    parser.add_argument("search", help="literal string to search for")
    parser.add_argument("replace", help="replacement string")
    parser.add_argument(
        "-b", "--bundles", help="comma separated list of bundles, e.g. page,article"
    )
    parser.add_argument(
        "-f", "--fields", help="comma separated list of fields, e.g. body,field_notes"
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        help="only count what would be changed, change nothing",
        action="store_true",
    )
    parser.add_argument(
        "-i",
        "--show-ids",
        help="list ids of matching entities (implies --dry-run)",
        action="store_true",
    )
    parser.add_argument("-j", "--job", help="load a job config, e.g. 'replace.toml'")
    parser.add_argument(
        "--dsn", help="database url, e.g. mysql+pymysql://user:pw@host/db"
    )
    parser.add_argument(
        "--log", default="replacer.log", help="audit log file (default: replacer.log)"
    )
    parser.add_argument(
        "-y", "--yes", help="don't ask for confirmation", action="store_true"
    )
    parser.add_argument(
        "-v",
        "--version",
        help="show program's version",
        action="version",
        version=__version__,
    )
    args = parser.parse_args(argv)

    init_log(path=args.log)
    request = ReplacementRequest(
        entity_type=args.entity_type,
        search=args.search,
        replace=args.replace,
        bundles=split_csv(args.bundles),
        fields=split_csv(args.fields),
        dry_run=args.dry_run,
        show_ids=args.show_ids,
    )
    confirm = None if args.yes else confirm_twice

    try:
        sr = SearchReplace(conf_fn=args.job, dsn=args.dsn)
        outcomes = sr.run(request=request, confirm=confirm)
    except (ConfigError, ValidationError) as e:
        raise SystemExit(f"{e}") from None
    except ExecutionFailure as e:
        print(e)
        raise SystemExit(2) from None
    except SQLAlchemyError as e:
        # connecting or reading the schema; statements are wrapped by the Executor
        raise SystemExit(f"ERROR: Database error, nothing changed: {e}") from None

    if outcomes is None:
        print("Aborting.")
