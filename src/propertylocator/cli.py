import argparse
import json
from pathlib import Path

from propertylocator.settings import load_settings, straight_line_ratio


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default="config/default.yaml", help="Path to config YAML")
    common.add_argument("--area", default=None, help="Area name (config/areas/<name>.yaml)")

    parser = argparse.ArgumentParser(prog="propertylocator", description="PropertyLocator CLI", parents=[common])

    sub = parser.add_subparsers(dest="command", required=True)
    extract = sub.add_parser("extract", parents=[common], help="Parse coordinates from a map URL or 'lat, lon' text")
    extract.add_argument("text", help="Map share URL or coordinate pair")
    geocode = sub.add_parser("geocode", parents=[common], help="Look up one facility name with Nominatim")
    geocode.add_argument("name", help="Facility name (the area suffix is appended)")
    estimate = sub.add_parser("estimate", parents=[common], help="Estimate from the catalog without geocoding")
    estimate.add_argument("--ratio", type=float, default=None, help="Walking-to-straight-line ratio")
    run = sub.add_parser("run", parents=[common], help="Geocode unresolved facilities, estimate, write outputs")
    run.add_argument("--ratio", type=float, default=None, help="Walking-to-straight-line ratio")
    run.add_argument("--skip-geocode", action="store_true", help="Use only facilities that already have a location")
    run.add_argument("--write-back", action="store_true", help="Save resolved locations to the facility catalog")
    sub.add_parser("validate-facilities", parents=[common], help="Validate the facility catalog")
    sub.add_parser("api-info", parents=[common], help="Print API run instructions")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "extract":
        # Pure parsing: no settings, no log files.
        from propertylocator.locate.extract import match_coordinates

        found = match_coordinates(args.text)
        if found is None:
            raise SystemExit("No coordinates found")
        matcher, coord = found
        print(f"{coord.lat},{coord.lon}\t({matcher})")
        return

    settings = load_settings(Path(args.config), area=args.area)

    if args.command == "api-info":
        host = settings["api"]["host"]
        port = settings["api"]["port"]
        print(f"Run: uvicorn propertylocator.api.main:app --reload --host {host} --port {port}")
        return

    if args.command == "geocode":
        from propertylocator.pipeline import build_geocoder

        result = build_geocoder(settings).geocode(args.name)
        if result is None:
            raise SystemExit(f"Not found: {args.name}")
        print(f"{result.coordinate.lat},{result.coordinate.lon}\t{result.display_name}")
        return

    if args.command == "validate-facilities":
        from propertylocator.facilities.load import load_facilities_catalog
        from propertylocator.facilities.validators import validate_facilities_catalog, write_validation_report

        result = validate_facilities_catalog(load_facilities_catalog(settings))
        report_path = write_validation_report(settings, result)
        print(json.dumps(result.as_dict(), ensure_ascii=False, indent=2))
        print(f"Report: {report_path}")
        if not result.ok:
            raise SystemExit(1)
        return

    if args.command == "estimate":
        from propertylocator.locate.explain import build_explain_text
        from propertylocator.pipeline import compute_estimation

        ratio = args.ratio if args.ratio is not None else straight_line_ratio(settings)
        _, outputs = compute_estimation(settings, geocode=False, ratio=ratio)
        print(build_explain_text(outputs.explain))
        return

    if args.command == "run":
        from propertylocator.locate.explain import build_explain_text
        from propertylocator.pipeline import run_estimation

        outputs = run_estimation(
            settings,
            geocode=not getattr(args, "skip_geocode", False),
            write_back=bool(getattr(args, "write_back", False)),
            ratio=args.ratio,
        )
        print(build_explain_text(outputs.explain))
        return

    raise SystemExit(f"Unknown command: {args.command}")
