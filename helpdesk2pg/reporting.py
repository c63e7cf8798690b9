"""
HTML migration report generation.
"""

from html import escape

from helpdesk2pg import REPORT_FILE
from helpdesk2pg.config import ConnectionConfig
from helpdesk2pg.orchestrator import MigrationReport


CSS = """
    body { font-family: 'Inter', -apple-system, sans-serif; line-height: 1.5; color: #333; max-width: 1200px; margin: 0 auto; padding: 40px 20px; background-color: #f8f9fa; }
    h1, h2, h3 { color: #1a202c; }
    .header { border-bottom: 2px solid #e2e8f0; padding-bottom: 20px; margin-bottom: 40px; display: flex; justify-content: space-between; align-items: center; }
    .status { padding: 8px 16px; border-radius: 9999px; font-weight: 600; font-size: 0.875rem; }
    .status-pass { background-color: #c6f6d5; color: #22543d; }
    .status-dry { background-color: #feebc8; color: #744210; }
    .card { background: white; border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,0.1); padding: 24px; margin-bottom: 32px; }
    table { width: 100%; border-collapse: collapse; margin-top: 16px; }
    th { text-align: left; padding: 12px; background: #f7fafc; border-bottom: 2px solid #edf2f7; font-size: 0.75rem; text-transform: uppercase; letter-spacing: 0.05em; color: #4a5568; }
    td { padding: 12px; border-bottom: 1px solid #edf2f7; font-size: 0.875rem; }
    .table-name { font-weight: 600; color: #2d3748; }
    .badge { padding: 2px 8px; border-radius: 4px; font-size: 0.75rem; font-weight: 600; }
    .badge-ok { background: #c6f6d5; color: #22543d; }
    .badge-warn { background: #feebc8; color: #744210; }
"""


def _stat_card(label: str, value) -> str:
    return f"""
        <div class="card" style="margin-bottom: 0; text-align: center;">
            <div style="color: #718096; font-size: 0.875rem;">{label}</div>
            <div style="font-size: 2rem; font-weight: 700; color: #2d3748;">{value}</div>
        </div>"""


def render_html_report(report: MigrationReport, source: ConnectionConfig, destination: ConnectionConfig) -> str:
    status_class = "status-dry" if report.dry_run else "status-pass"
    status_text = "DRY RUN" if report.dry_run else "COMPLETED"
    encoded = sum(t.result.encoded_rows for t in report.copied)

    html = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Migration Report - {escape(source.database)} to {escape(destination.database)}</title>
    <style>{CSS}</style>
</head>
<body>
    <div class="header">
        <div>
            <h1>Migration Report</h1>
            <p style="color: #718096; margin-top: 4px;">{escape(source.safe_uri)} &rarr; {escape(destination.safe_uri)}</p>
        </div>
        <div class="status {status_class}">{status_text}</div>
    </div>

    <div style="display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin-bottom: 40px;">
        {_stat_card("Tables Copied", f"{len(report.copied)}/{len(report.tables)}")}
        {_stat_card("Rows Copied", f"{report.total_rows:,}")}
        {_stat_card("Base64-encoded Attachments", f"{encoded:,}")}
        {_stat_card("Sequences Reset", len(report.sequences))}
    </div>

    <div class="card">
        <h3>Tables</h3>
        <table>
            <thead>
                <tr>
                    <th>Table Name</th>
                    <th>Source Rows</th>
                    <th>Copied Rows</th>
                    <th>Chunks</th>
                    <th>Status</th>
                </tr>
            </thead>
            <tbody>
    """

    for outcome in report.tables:
        result = outcome.result
        if result is not None:
            b_class = "badge-ok"
            cells = f"<td>{result.source_rows:,}</td><td>{result.copied_rows:,}</td><td>{result.chunks}</td>"
        else:
            b_class = "badge-warn"
            side = "destination" if outcome.table.in_source else "source"
            cells = f"<td colspan=\"3\">missing in {side}</td>"
        html += f"""
                <tr>
                    <td class="table-name">{escape(outcome.table.name)}</td>
                    {cells}
                    <td><span class="badge {b_class}">{outcome.status}</span></td>
                </tr>"""

    html += """
            </tbody>
        </table>
    </div>

    <div class="card">
        <h3>Sequences</h3>
        <table>
            <thead>
                <tr>
                    <th>Sequence</th>
                    <th>Table</th>
                    <th>Next Value</th>
                </tr>
            </thead>
            <tbody>
    """

    for seq in report.sequences:
        html += f"""
                <tr>
                    <td class="table-name">{escape(seq.ref.sequence)}</td>
                    <td>{escape(seq.ref.table)}</td>
                    <td>{seq.next_value:,}</td>
                </tr>"""

    html += """
            </tbody>
        </table>
    </div>

    <footer style="text-align: center; color: #a0aec0; font-size: 0.75rem; margin-top: 40px;">
        Generated by helpdesk2pg migration tool
    </footer>
</body>
</html>
    """
    return html


def generate_html_report(report: MigrationReport, source: ConnectionConfig, destination: ConnectionConfig,
                         html_file: str = REPORT_FILE) -> str:
    """Write the HTML migration report and return its path."""
    with open(html_file, "w", encoding="utf-8") as f:
        f.write(render_html_report(report, source, destination))

    return html_file
