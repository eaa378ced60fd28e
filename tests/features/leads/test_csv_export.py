import csv
import io
from datetime import date, datetime

from app.features.leads.models.lead import Lead
from app.features.leads.services.csv_export import CSV_COLUMNS, format_csv_value, leads_to_csv


def test_header_only_for_no_leads():
    content = leads_to_csv([])

    assert content == ",".join(header for header, _ in CSV_COLUMNS)
    assert content.split(",")[0] == "ID"
    assert content.split(",")[-1] == "Updated At"


def test_values_are_formatted():
    assert format_csv_value(None) == ""
    assert format_csv_value(date(2025, 1, 2)) == "2025-01-02"
    assert format_csv_value(datetime(2025, 1, 2, 15, 30)) == "2025-01-02"
    assert format_csv_value("hot") == "hot"


def test_rows_survive_a_csv_reader():
    lead = Lead(
        id="lead-1",
        name="Ann Smith",
        phone_number="+15550100",
        company_name="Smith, Jones & Co",
        additional_notes='Line one\nLine "two"',
        lead_status="new",
        customer_category="potential",
        lead_source="website",
        owner_id=1,
    )

    content = leads_to_csv([lead])
    rows = list(csv.reader(io.StringIO(content)))

    assert len(rows) == 2
    record = dict(zip(rows[0], rows[1]))
    assert record["ID"] == "lead-1"
    assert record["Company Name"] == "Smith, Jones & Co"
    assert record["Additional Notes"] == 'Line one\nLine "two"'
    assert record["Email"] == ""
    assert '"Smith, Jones & Co"' in content
