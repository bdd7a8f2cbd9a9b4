"""
Command line entry point: rank a profiles file against a job description file.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

from talent_match.models.settings import report_dir_from_env
from talent_match.services.graph import match_candidates
from talent_match.utils.exceptions import TalentMatchError
from talent_match.utils.logging_config import configure_for_environment, get_logger

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="talent-match",
        description="Rank candidate profiles against a job description, facet by facet.",
    )
    parser.add_argument("-j", "--job-description", required=True, help="text file holding the job description")
    parser.add_argument("-p", "--profiles", required=True, help="JSON file holding an array of candidate profiles")
    parser.add_argument(
        "-o", "--report-dir",
        default=report_dir_from_env(),
        help="directory for the timestamped analysis report (default: %(default)s)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    configure_for_environment()
    args = parse_args(argv)

    try:
        job_description = Path(args.job_description).read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Could not read job description file {args.job_description}: {e}")
        return 1

    try:
        results = asyncio.run(match_candidates(job_description, args.profiles, report_dir=args.report_dir))
    except TalentMatchError as e:
        logger.error(f"Error in matching process: {e.message}", extra={"error": e.to_dict()})
        return 1
    except Exception:
        logger.exception("Unexpected error in matching process")
        return 1

    print(json.dumps([r.model_dump(mode="json", by_alias=True) for r in results], indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
