import argparse
import json
import os
import uuid
from dataclasses import replace
from pathlib import Path

from . import __version__
from .advisory import STATUS_INVALID, STATUS_NO_MATCH, QuickAdvisoryForm, run_quick_advisory
from .cleanup import cleanup_stale_sessions
from .config import Settings
from .env import load_env
from .formatting import format_percent, format_salary, format_salary_range
from .logger import get_logger
from .matcher import OccupationMatcher
from .persistence import SessionRepository, export_to_file, import_from_file
from .storage import load_json
from .wages import (
    POSITIONING_GOALS,
    calculate_percentile_band,
    check_alignment,
    get_recommended_salary_range,
    interpolate_percentile,
)

logger = get_logger()


def load_matcher(settings: Settings) -> OccupationMatcher:
    matcher = OccupationMatcher.from_files(settings.occupations_path, settings.title_index_path)
    if not matcher.occupations:
        raise SystemExit(
            f"No occupation data at {settings.occupations_path}. "
            "Run onet-process, bls-process and integrate first."
        )
    return matcher


def cmd_match(args: argparse.Namespace) -> None:
    matcher = load_matcher(args.settings)
    results = matcher.match(
        args.title,
        max_results=args.max_results,
        min_confidence=args.min_confidence,
        preferred_groups=args.group or (),
        include_without_wages=args.include_without_wages,
    )
    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return
    if not results:
        print(f'No occupations matched "{args.title}".')
        return
    for r in results:
        print(f"{r.confidence:.2f}  {r.code}  {r.title}  [{r.match_type}: {r.matched_on}]")


def cmd_search(args: argparse.Namespace) -> None:
    matcher = load_matcher(args.settings)
    found = matcher.search_occupations(args.keyword, limit=args.limit)
    if not found:
        print(f'No occupations found for "{args.keyword}".')
        return
    for occ in found:
        median = format_salary(occ.percentiles.median) if occ.has_wage_data else "no wage data"
        print(f"{occ.code}  {occ.title}  ({occ.group}, median {median})")


def cmd_percentile(args: argparse.Namespace) -> None:
    matcher = load_matcher(args.settings)
    occ = matcher.get_occupation(args.code)
    if occ is None:
        raise SystemExit(f"Unknown occupation code: {args.code}")
    if not occ.has_wage_data:
        raise SystemExit(f"{occ.code} {occ.title} has no wage data")

    percentiles = occ.percentiles
    percentile = interpolate_percentile(args.salary, percentiles)
    band = calculate_percentile_band(args.salary, percentiles)
    print(f"{occ.code} {occ.title}")
    print(f"Salary: {format_salary(args.salary)}")
    print(f"Percentile: {percentile:.1f} ({band.label})")

    if args.positioning:
        alignment = check_alignment(args.salary, args.positioning, percentiles)
        rng = get_recommended_salary_range(args.positioning, percentiles)
        print(f"Target: {alignment.target_range.label}")
        print(alignment.message)
        print(f"Recommended range: {format_salary_range(rng['min'], rng['max'])}")


def cmd_advise(args: argparse.Namespace) -> None:
    matcher = load_matcher(args.settings)
    form = QuickAdvisoryForm(
        job_title=args.title,
        location=args.location,
        num_employees=args.employees,
        proposed_salary=args.salary,
        market_positioning=args.positioning,
        annual_revenue=args.revenue,
        annual_payroll=args.payroll,
    )
    outcome = run_quick_advisory(form, matcher)

    if outcome.status == STATUS_INVALID:
        print("Invalid:")
        for e in outcome.errors:
            print(f" - {e}")
        raise SystemExit(2)
    if outcome.status == STATUS_NO_MATCH:
        print(outcome.message)
        return

    results = outcome.results
    if args.json:
        print(json.dumps(results.to_dict(), indent=2))
    else:
        occ = outcome.occupation
        print(f"Matched: {occ.code} {occ.title} (confidence {outcome.match.confidence:.2f})")
        print(f"Proposed salary: {format_salary(results.proposed_salary)}")
        print(f"Market percentile: {results.percentile} ({outcome.band.label})")
        print(f"Target: {results.target_range_label} to {POSITIONING_GOALS.get(form.market_positioning, '')}")
        print(f"Gap: {results.gap_description}")
        rng = outcome.recommended_range
        print(f"Recommended range: {format_salary_range(rng['min'], rng['max'])}")
        if results.recommended_increase:
            print(f"Suggested salary: {format_salary(results.recommended_salary)} (+{format_salary(results.recommended_increase)})")
        payroll = outcome.affordability
        print(
            f"Payroll/revenue: {format_percent(payroll.current_ratio)} -> "
            f"{format_percent(payroll.new_ratio)} ({payroll.status})"
        )
        print(payroll.message)

    if args.save_session:
        repo = SessionRepository(args.settings.db_path)
        state = {
            "quickAdvisory": form.to_dict(),
            "matching": {"code": outcome.match.code, "title": outcome.match.title},
            "results": {"quickAdvisory": results.to_dict()},
        }
        if not repo.save(args.save_session, state):
            raise SystemExit(repo.tracker.get_status()["error"])
        print(f"Saved session: {args.save_session}")


def cmd_stats(args: argparse.Namespace) -> None:
    matcher = load_matcher(args.settings)
    stats = matcher.get_occupation_stats()
    print(f"Occupations: {stats['total']}")
    print(f"  with wages:    {stats['with_wages']}")
    print(f"  without wages: {stats['without_wages']}")
    print(f"Groups: {stats['groups']}")
    for group in matcher.get_occupation_groups():
        print(f" - {group}")


def cmd_bls_download(args: argparse.Namespace) -> None:
    from .etl import bls

    url = args.url or (bls.discover_zip_url() if args.discover else bls.BLS_ZIP_URL)
    try:
        path = bls.download_bls_data(args.settings.raw_dir / "bls", url)
    except ValueError as e:
        raise SystemExit(str(e))
    finally:
        logger.log_metrics_summary()
    print(f"Downloaded: {path}")


def cmd_bls_process(args: argparse.Namespace) -> None:
    from .etl import bls

    source = Path(args.input) if args.input else args.settings.raw_dir / "bls"
    if not source.exists():
        raise SystemExit(f"Input not found: {source}")
    try:
        output = bls.process_bls_data(source, args.settings.bls_data_path)
    except (FileNotFoundError, ValueError) as e:
        raise SystemExit(str(e))
    print(f"Processed {output['metadata']['totalOccupations']} occupations -> {args.settings.bls_data_path}")


def cmd_bls_fetch_api(args: argparse.Namespace) -> None:
    from .etl import bls_api

    settings = args.settings
    api_key = args.api_key or settings.bls_api_key
    if not api_key:
        raise SystemExit("BLS_API_KEY not set. Set env var or pass --api-key.")

    onet = load_json(settings.onet_occupations_path, default=None)
    if not onet:
        raise SystemExit(f"O*NET data not found at {settings.onet_occupations_path}. Run onet-process first.")

    geographies = bls_api.GEOGRAPHIES
    if args.geography == "national":
        geographies = {"National": bls_api.GEOGRAPHIES["National"]}

    fetcher = bls_api.BLSApiFetcher(
        api_key=api_key,
        progress_path=settings.data_dir / "progress.json",
        output_path=settings.processed_dir / "bls-api-data.json",
        error_log_path=settings.data_dir / "errors.log",
    )
    output = fetcher.run(
        bls_api.load_occupation_codes(onet),
        geographies=geographies,
        limit=args.limit,
        reset=args.reset,
    )
    logger.log_metrics_summary()
    print(f"Fetched {len(output['occupations'])} occupations -> {fetcher.output_path}")


def cmd_onet_download(args: argparse.Namespace) -> None:
    from .etl import onet

    raw_dir = args.settings.raw_dir / "onet"
    if not args.verify:
        try:
            onet.download_onet_data(raw_dir, force=args.force)
        except (FileNotFoundError, ValueError) as e:
            raise SystemExit(str(e))

    results = onet.verify_all_files(raw_dir)
    if results["critical_missing"]:
        raise SystemExit(f"Critical O*NET files missing: {', '.join(results['critical_missing'])}")
    if args.verify and (results["missing"] or results["invalid"]):
        raise SystemExit(2)
    print(f"O*NET files ready in {raw_dir}")


def cmd_onet_process(args: argparse.Namespace) -> None:
    from .etl import onet

    raw_dir = Path(args.input) if args.input else args.settings.raw_dir / "onet"
    try:
        stats = onet.process_onet_data(raw_dir, args.settings.processed_dir)
    except ValueError as e:
        raise SystemExit(str(e))
    summary = stats["summary"]
    print(f"Processed {summary['totalOccupations']} occupations, {summary['uniqueTitlesInIndex']} index keys")


def cmd_integrate(args: argparse.Namespace) -> None:
    from .etl import integrate

    settings = args.settings
    try:
        database = integrate.integrate_data(
            settings.onet_occupations_path,
            settings.bls_data_path,
            settings.data_dir,
            index_path=settings.title_index_path,
        )
    except ValueError as e:
        raise SystemExit(str(e))
    meta = database["metadata"]
    print(f"Integrated {meta['totalOccupations']} occupations ({meta['coveragePercentage']} with wages)")


def cmd_export(args: argparse.Namespace) -> None:
    repo = SessionRepository(args.settings.db_path)
    state = repo.load(args.session)
    if state is None:
        raise SystemExit(f"Session not found: {args.session}")
    path = export_to_file(state, Path(args.out))
    print(f"Exported: {path}")


def cmd_import(args: argparse.Namespace) -> None:
    result = import_from_file(Path(args.input))
    if not result.success:
        print("Import failed:")
        for e in result.errors:
            print(f" - {e}")
        raise SystemExit(2)
    session_id = args.session or uuid.uuid4().hex
    repo = SessionRepository(args.settings.db_path)
    if not repo.save(session_id, result.state):
        raise SystemExit(repo.tracker.get_status()["error"])
    print(f"Imported session: {session_id}")


def cmd_sessions(args: argparse.Namespace) -> None:
    sessions = SessionRepository(args.settings.db_path).list_sessions()
    if not sessions:
        print("No saved sessions.")
        return
    for s in sessions:
        print(f"{s['id']}  {s['company_name'] or '-'}  updated {s['updated_at']}")


def cmd_cleanup(args: argparse.Namespace) -> None:
    before, after = cleanup_stale_sessions(args.settings.db_path, days=args.days)
    print(f"Sessions: {before} -> {after}")


def cmd_serve_feedback(args: argparse.Namespace) -> None:
    import uvicorn

    from .feedback import create_app

    uvicorn.run(create_app(args.settings), host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobeval", description="JobEval: occupation matching and salary evaluation")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--data-dir", help="Data directory (or set JOBEVAL_DATA_DIR)")
    parser.add_argument("--db", help="Session database path (or set JOBEVAL_DB_PATH)")

    subparsers = parser.add_subparsers(dest="command")

    mt = subparsers.add_parser("match", help="Match a job title to occupations")
    mt.add_argument("--title", required=True, help="Free-text job title")
    mt.add_argument("--max-results", type=int, default=5, help="Maximum results (default 5)")
    mt.add_argument("--min-confidence", type=float, default=0.3, help="Confidence threshold (default 0.3)")
    mt.add_argument("--group", action="append", help="Preferred occupation group (repeatable)")
    mt.add_argument("--include-without-wages", action="store_true", help="Also return occupations without wage data")
    mt.add_argument("--json", action="store_true", help="Print JSON")
    mt.set_defaults(func=cmd_match)

    sr = subparsers.add_parser("search", help="Keyword search over occupations")
    sr.add_argument("--keyword", required=True, help="Keyword to search for")
    sr.add_argument("--limit", type=int, default=10, help="Maximum results (default 10)")
    sr.set_defaults(func=cmd_search)

    pc = subparsers.add_parser("percentile", help="Place a salary in an occupation's wage distribution")
    pc.add_argument("--code", required=True, help="Occupation code, e.g. 15-1252.00")
    pc.add_argument("--salary", type=float, required=True, help="Annual salary in dollars")
    pc.add_argument("--positioning", choices=["budget_friendly", "competitive", "top_talent"], help="Market positioning")
    pc.set_defaults(func=cmd_percentile)

    adv = subparsers.add_parser("advise", help="Quick salary advisory for one hire")
    adv.add_argument("--title", required=True, help="Job title")
    adv.add_argument("--salary", type=float, required=True, help="Proposed annual salary")
    adv.add_argument("--location", required=True, help="Location (state)")
    adv.add_argument("--employees", type=int, default=1, help="Number of hires (default 1)")
    adv.add_argument("--positioning", default="competitive", choices=["budget_friendly", "competitive", "top_talent"])
    adv.add_argument("--revenue", type=float, required=True, help="Annual revenue")
    adv.add_argument("--payroll", type=float, required=True, help="Current annual payroll")
    adv.add_argument("--json", action="store_true", help="Print results as JSON")
    adv.add_argument("--save-session", help="Save the advisory under this session id")
    adv.set_defaults(func=cmd_advise)

    st = subparsers.add_parser("stats", help="Occupation database statistics")
    st.set_defaults(func=cmd_stats)

    bd = subparsers.add_parser("bls-download", help="Download the BLS OEWS national archive")
    bd.add_argument("--url", help="Explicit archive URL")
    bd.add_argument("--discover", action="store_true", help="Find the newest archive on the BLS special-requests page")
    bd.set_defaults(func=cmd_bls_download)

    bp = subparsers.add_parser("bls-process", help="Process the BLS archive into bls-data.json")
    bp.add_argument("--input", help="Archive or directory holding it (default: <data>/raw/bls)")
    bp.set_defaults(func=cmd_bls_process)

    ba = subparsers.add_parser("bls-fetch-api", help="Fetch wages from the BLS Public API (resumable)")
    ba.add_argument("--reset", action="store_true", help="Start fresh instead of resuming")
    ba.add_argument("--geography", choices=["all", "national"], default="all", help="Geographies to fetch")
    ba.add_argument("--limit", type=int, default=0, help="Only the first N occupations")
    ba.add_argument("--api-key", help="BLS API key (or set BLS_API_KEY)")
    ba.set_defaults(func=cmd_bls_fetch_api)

    od = subparsers.add_parser("onet-download", help="Download and verify the O*NET text database")
    od.add_argument("--force", action="store_true", help="Re-download even if the archive exists")
    od.add_argument("--verify", action="store_true", help="Only verify existing files")
    od.set_defaults(func=cmd_onet_download)

    op = subparsers.add_parser("onet-process", help="Process O*NET text files into JSON and the title index")
    op.add_argument("--input", help="Raw O*NET directory (default: <data>/raw/onet)")
    op.set_defaults(func=cmd_onet_process)

    ig = subparsers.add_parser("integrate", help="Merge O*NET and BLS data into the occupation database")
    ig.set_defaults(func=cmd_integrate)

    ex = subparsers.add_parser("export", help="Export a saved session to JSON")
    ex.add_argument("--session", required=True, help="Session id")
    ex.add_argument("--out", default=".", help="Output directory (default: current)")
    ex.set_defaults(func=cmd_export)

    im = subparsers.add_parser("import", help="Import an exported JSON file as a session")
    im.add_argument("--input", required=True, help="Exported JSON file")
    im.add_argument("--session", help="Session id to store under (default: new id)")
    im.set_defaults(func=cmd_import)

    ss = subparsers.add_parser("sessions", help="List saved sessions")
    ss.set_defaults(func=cmd_sessions)

    cl = subparsers.add_parser("cleanup", help="Delete sessions not updated recently")
    cl.add_argument("--days", type=int, default=30, help="Retention window in days (default 30)")
    cl.set_defaults(func=cmd_cleanup)

    sf = subparsers.add_parser("serve-feedback", help="Run the feedback endpoint")
    sf.add_argument("--host", default="127.0.0.1")
    sf.add_argument("--port", type=int, default=8000)
    sf.set_defaults(func=cmd_serve_feedback)

    return parser


def main(argv=None):
    # Load .env if present (BLS_API_KEY, GITHUB_TOKEN, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    settings = Settings.from_env()
    if args.data_dir:
        # db path follows the data dir unless set explicitly
        db_path = settings.db_path if os.environ.get("JOBEVAL_DB_PATH") else None
        settings = replace(settings, data_dir=Path(args.data_dir), db_path=db_path)
    if args.db:
        settings.db_path = Path(args.db)
    args.settings = settings
    logger.set_level(settings.log_level)

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
