"""Reports module for browsing the stored NOTAMs from the console."""
import argparse
import sys
from collections import Counter
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from iaa_notams.config import Config
from iaa_notams.models.notam import Notam, ScopeCode
from iaa_notams.store import NotamStore, export_notams


def filter_notams(
    notams: List[Notam],
    moment: Optional[datetime] = None,
    icao_code: Optional[str] = None,
    scope: Optional[ScopeCode] = None,
) -> List[Notam]:
    """Filter by validity at a moment, location code and scope."""
    filtered = notams

    if moment is not None:
        filtered = [n for n in filtered if n.is_valid_at(moment)]

    if icao_code:
        filtered = [n for n in filtered if n.location_code == icao_code.upper()]

    if scope:
        filtered = [n for n in filtered if n.scope_code == scope]

    return filtered


def filter_notams_by_date(notams: List[Notam], flight_date: date) -> List[Notam]:
    """NOTAMs in force at any time during a UTC calendar day."""
    day_start = datetime.combine(flight_date, time.min, tzinfo=timezone.utc)
    day_end = datetime.combine(flight_date, time.max, tzinfo=timezone.utc)

    return [
        n for n in notams
        if (n.valid_from is None or n.valid_from <= day_end)
        and (n.valid_to is None or n.valid_to >= day_start)
    ]


def format_notam_for_display(notam: Notam) -> str:
    """Format a NOTAM for display."""
    lines = [
        f"ID: {notam.notam_id}",
        f"ICAO: {notam.location_code or 'N/A'}",
        f"Type: {notam.scope_description}",
    ]
    if notam.valid_from:
        lines.append(f"Valid From: {notam.valid_from.strftime('%d %b %Y %H:%M')}")
    if notam.is_permanent:
        lines.append("Valid To: PERM")
    elif notam.valid_to:
        lines.append(f"Valid To: {notam.valid_to.strftime('%d %b %Y %H:%M')}")
    if not notam.valid_from and not notam.valid_to:
        lines.append("Validity: Not specified (assumed current)")
    lines.append(f"Description: {notam.body_text}")
    if notam.coordinate_link:
        lines.append(f"Map: {notam.coordinate_link}")
    lines.append("---")
    return "\n".join(lines)


def generate_summary(notams: List[Notam]) -> str:
    """Counts per scope and the ten busiest locations."""
    by_scope = Counter(n.scope_description for n in notams)
    by_location = Counter(n.location_code or 'N/A' for n in notams)

    lines = [f"Total NOTAMs: {len(notams)}", "", "By Type:"]
    lines.extend(f"  {scope}: {count}" for scope, count in sorted(by_scope.items()))
    lines.extend(["", "By Airport/FIR:"])
    lines.extend(f"  {icao}: {count}" for icao, count in by_location.most_common(10))
    return "\n".join(lines)


class ReportRunner:
    """Handles report execution over the JSON store."""

    def __init__(self, store: Optional[NotamStore] = None):
        self.store = store or NotamStore(Config.DATA_DIRECTORY, Config.BACKUP_DIRECTORY, Config.MAX_BACKUPS)
        self.storage = self.store.load()

    def _display_results(self, results: List[Dict[str, Any]]) -> None:
        """Display results in a formatted table."""
        if not results:
            print("No results found.")
            return

        # Get column names
        columns = list(results[0].keys())

        # Calculate column widths
        widths = {col: len(col) for col in columns}
        for row in results:
            for col in columns:
                widths[col] = min(max(widths[col], len(str(row[col]))), 100)

        print(" | ".join(col.ljust(widths[col]) for col in columns))
        print("-+-".join("-" * widths[col] for col in columns))

        for row in results:
            print(" | ".join(str(row[col])[:widths[col]].ljust(widths[col]) for col in columns))

        print(f"\n{len(results)} row(s) returned.\n")

    def select(self, flight_date: Optional[date] = None, icao_code: Optional[str] = None,
               scope: Optional[ScopeCode] = None) -> List[Notam]:
        notams = self.storage.notams
        if flight_date:
            notams = filter_notams_by_date(notams, flight_date)
        else:
            notams = filter_notams(notams, moment=datetime.now(timezone.utc))
        return filter_notams(notams, icao_code=icao_code, scope=scope)

    def report_active(self, notams: List[Notam]) -> None:
        """Display NOTAMs in a table."""
        print("\n=== Active NOTAMs ===\n")
        rows = []
        for n in notams:
            rows.append({
                'NOTAM ID': n.notam_id,
                'ICAO': n.location_code or 'N/A',
                'Type': n.scope_description,
                'From': n.valid_from.strftime('%Y-%m-%d %H:%M') if n.valid_from else 'N/A',
                'To': 'PERM' if n.is_permanent else (n.valid_to.strftime('%Y-%m-%d %H:%M') if n.valid_to else 'N/A'),
                'Text': n.body_text[:60],
            })
        self._display_results(rows)

    def report_details(self, notams: List[Notam]) -> None:
        for notam in notams:
            print(format_notam_for_display(notam))

    def report_statistics(self) -> None:
        """Display summary statistics."""
        print("\n=== NOTAM Store Statistics ===\n")
        stats = self.store.stats(self.storage)

        print(f"Total NOTAMs in store: {stats['total_count']}")
        print(f"Last updated: {stats['last_updated'].isoformat()}")
        if stats['oldest_created_at']:
            print(f"Oldest record: {stats['oldest_created_at'].isoformat()}")
            print(f"Newest record: {stats['newest_created_at'].isoformat()}")
        print()
        print(generate_summary(self.storage.notams))
        print()

    def report_by_location(self, notams: List[Notam]) -> None:
        """Display NOTAMs grouped by location code."""
        print("\n=== NOTAMs by Location ===\n")
        counts = Counter(n.location_code or 'N/A' for n in notams)
        self._display_results([
            {'ICAO': icao, 'NOTAMs': count} for icao, count in counts.most_common()
        ])


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {value}. Use ISO format: YYYY-MM-DD (e.g., 2025-01-15)"
        )


def main(argv: Optional[List[str]] = None):
    """Main entry point for report runner."""
    parser = argparse.ArgumentParser(description='Reports over the stored NOTAMs')
    parser.add_argument('report', choices=['active', 'details', 'stats', 'by-location'],
                        help='Report to run')
    parser.add_argument('-d', '--date', type=_parse_date,
                        help='Flight date (YYYY-MM-DD), default: now')
    parser.add_argument('-i', '--icao', help='Filter by ICAO location code (e.g. LLBG)')
    parser.add_argument('-t', '--type', choices=[s.value for s in ScopeCode],
                        help='Filter by type (A=Aerodrome, C=En-route, R=Radar, N=Navigation)')
    parser.add_argument('-e', '--export', metavar='FILE',
                        help='Export the filtered NOTAMs to a JSON file')
    args = parser.parse_args(argv)

    runner = ReportRunner()
    scope = ScopeCode(args.type) if args.type else None
    notams = runner.select(args.date, args.icao, scope)

    if args.report == 'active':
        runner.report_active(notams)
    elif args.report == 'details':
        runner.report_details(notams)
    elif args.report == 'stats':
        runner.report_statistics()
    else:
        runner.report_by_location(notams)

    if args.export:
        export_notams(notams, args.export, args.date.isoformat() if args.date else None)


if __name__ == '__main__':
    sys.exit(main())
