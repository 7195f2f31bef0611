"""
Tests for report formatting and PDF rendering.
"""

import base64
import pytest
from datetime import date
from decimal import Decimal
from io import BytesIO

from PIL import Image as PILImage

from src.models.ledger import (
    Category,
    InstitutionSettings,
    Transaction,
    TransactionType,
)
from src.reports import (
    annual_report_filename,
    annual_report_tables,
    build_report_header,
    format_date_id,
    format_rupiah,
    monthly_report_filename,
    monthly_report_tables,
    monthly_report_title,
    render_report_pdf,
    summarize_month,
    summarize_year,
)
from src.reports import pdf as pdf_module


INCOME = TransactionType.INCOME
EXPENSE = TransactionType.EXPENSE


@pytest.fixture
def categories():
    return [
        Category(id="A", name="Donasi", type=INCOME),
        Category(id="B", name="Listrik", type=EXPENSE),
    ]


@pytest.fixture
def transactions():
    return [
        Transaction(date=date(2024, 3, 1), type=INCOME, category_id="A", amount=100000, description="Hamba Allah"),
        Transaction(date=date(2024, 3, 15), type=EXPENSE, category_id="B", amount=40000),
        Transaction(date=date(2024, 3, 20), type=EXPENSE, category_id="gone", amount=20000, description="Lain-lain"),
    ]


class TestValueFormatting:
    """Tests for Rupiah and date formatting."""

    @pytest.mark.parametrize("amount, expected", [
        (Decimal("100000"), "Rp100.000"),
        (Decimal("-60000"), "-Rp60.000"),
        (Decimal("0"), "Rp0"),
        (Decimal("999"), "Rp999"),
        (Decimal("1234567890"), "Rp1.234.567.890"),
        (Decimal("1500.5"), "Rp1.501"),
        (Decimal("-1500.5"), "-Rp1.501"),
        (Decimal("1500.49"), "Rp1.500"),
    ])
    def test_format_rupiah(self, amount, expected):
        """Test grouping, sign and half-away-from-zero rounding."""
        assert format_rupiah(amount) == expected

    def test_format_date_id(self):
        """Test Indonesian short dates have no zero padding."""
        assert format_date_id(date(2024, 3, 5)) == "5/3/2024"
        assert format_date_id(date(2024, 12, 31)) == "31/12/2024"


class TestMonthlyTables:
    """Tests for monthly report tables."""

    def test_table_order_and_content(self, transactions, categories):
        """Test the summary, breakdowns and transaction list."""
        summary = summarize_month(transactions, categories, 2024, 2)
        tables = monthly_report_tables(summary, categories)

        assert [t.columns[0] for t in tables] == [
            "Ringkasan Keuangan",
            "Rincian Pemasukan",
            "Rincian Pengeluaran",
            "Tanggal",
        ]
        assert tables[0].rows == (
            ("Total Pemasukan", "Rp100.000"),
            ("Total Pengeluaran", "Rp60.000"),
            ("Saldo Akhir", "Rp40.000"),
        )
        assert tables[0].bold_rows == (2,)
        assert tables[1].rows == (("Donasi", "Rp100.000"),)
        assert tables[2].rows == (("Listrik", "Rp40.000"),)

    def test_transaction_rows_display_order_and_labels(self, transactions, categories):
        """Test newest first, unknown category label and empty description."""
        summary = summarize_month(transactions, categories, 2024, 2)
        listing = monthly_report_tables(summary, categories)[-1]

        assert listing.rows == (
            ("20/3/2024", "Lain-lain", "Tanpa Kategori", "Rp20.000"),
            ("15/3/2024", "-", "Listrik", "Rp40.000"),
            ("1/3/2024", "Hamba Allah", "Donasi", "Rp100.000"),
        )
        assert listing.cell_colors[2] == (2, 3, "#059669")
        assert listing.cell_colors[0] == (0, 3, "#dc2626")

    def test_empty_month_has_summary_only(self, categories):
        """Test empty sections are omitted."""
        summary = summarize_month([], categories, 2024, 2)
        tables = monthly_report_tables(summary, categories)
        assert len(tables) == 1
        assert tables[0].rows[-1] == ("Saldo Akhir", "Rp0")

    def test_title(self, categories):
        """Test the monthly heading uses Indonesian month names."""
        summary = summarize_month([], categories, 2024, 7)
        assert monthly_report_title(summary) == "Laporan Keuangan Bulan Agustus 2024"


class TestAnnualTables:
    """Tests for annual report tables."""

    def test_annual_tables(self, transactions):
        """Test yearly summary and the twelve-row table."""
        summary = summarize_year(transactions, 2024)
        yearly, monthly = annual_report_tables(summary)

        assert yearly.columns == ("Ringkasan Tahunan", "Jumlah")
        assert yearly.rows[-1] == ("Saldo Akhir Tahun", "Rp40.000")
        assert monthly.columns == ("Bulan", "Pemasukan", "Pengeluaran", "Saldo Bulan")
        assert len(monthly.rows) == 12
        assert monthly.rows[2] == ("Maret", "Rp100.000", "Rp60.000", "Rp40.000")
        assert monthly.rows[0] == ("Januari", "Rp0", "Rp0", "Rp0")


class TestHeaderAndFilenames:
    """Tests for report header and download names."""

    def test_header_lines(self):
        """Test the header built from institution settings."""
        header = build_report_header(InstitutionSettings(), "Laporan Keuangan Tahunan 2024", date(2024, 4, 1))
        assert header.institution_name == "Pondok Pesantren Al-Hidayah"
        assert header.detail_lines == (
            "Disusun oleh: Ahmad Syafi'i",
            "Tanggal Cetak: 1/4/2024",
        )

    def test_filenames(self):
        """Test whitespace in the institution name becomes underscores."""
        settings = InstitutionSettings(name="Pondok Pesantren Al-Hidayah")
        assert monthly_report_filename(settings, 2024, 2) == (
            "Laporan_Bulanan_Pondok_Pesantren_Al-Hidayah_Maret_2024.pdf"
        )
        assert annual_report_filename(settings, 2024) == (
            "Laporan_Tahunan_Pondok_Pesantren_Al-Hidayah_2024.pdf"
        )


class TestPdfRendering:
    """Tests for the reportlab renderer."""

    def test_monthly_pdf(self, transactions, categories):
        """Test a full monthly report renders to a PDF document."""
        summary = summarize_month(transactions, categories, 2024, 2)
        header = build_report_header(InstitutionSettings(), monthly_report_title(summary), date(2024, 4, 1))
        output = render_report_pdf(header, monthly_report_tables(summary, categories))
        assert output.startswith(b"%PDF")

    def test_unloadable_logo_is_skipped(self):
        """Test a broken logo URL still produces a report."""
        settings = InstitutionSettings(logo_url="/nonexistent/logo.png")
        header = build_report_header(settings, "Laporan Keuangan Tahunan 2024", date(2024, 4, 1))

        assert pdf_module.load_logo(header.logo_url) is None
        output = render_report_pdf(header, annual_report_tables(summarize_year([], 2024)))
        assert output.startswith(b"%PDF")

    def test_data_uri_logo_is_drawn(self):
        """Test a logo saved by the browser version as a data URI is used."""
        buffer = BytesIO()
        PILImage.new("RGB", (120, 120), color=(20, 120, 60)).save(buffer, format="PNG")
        logo_url = "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
        settings = InstitutionSettings(logo_url=logo_url)
        header = build_report_header(settings, "Laporan Keuangan Tahunan 2024", date(2024, 4, 1))

        assert pdf_module.load_logo(header.logo_url) is not None
        output = render_report_pdf(header, annual_report_tables(summarize_year([], 2024)))
        assert output.startswith(b"%PDF")

    @pytest.mark.parametrize("logo_url", [
        "data:image/png,not-base64",
        "data:image/png;base64,@@@@",
    ])
    def test_unusable_data_uri_is_skipped(self, logo_url):
        assert pdf_module.load_logo(logo_url) is None
