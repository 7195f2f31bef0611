"""
Report Formatter

Turns aggregator output into display-ready tables. The same tables feed
the Streamlit reports page and the PDF renderer.

DESIGN DECISION: No arithmetic happens here. Every number shown comes
straight from a MonthlySummary or AnnualSummary; this module only
formats and arranges.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict

from src.models.ledger import (
    AnnualSummary,
    Category,
    InstitutionSettings,
    MonthlySummary,
    TransactionType,
)
from src.reports.aggregator import MONTH_NAMES, sort_for_display


UNCATEGORIZED_LABEL = "Tanpa Kategori"
EMPTY_DESCRIPTION = "-"

# Table header fills
COLOR_SUMMARY = "#0f766e"
COLOR_INCOME = "#10b981"
COLOR_EXPENSE = "#ef4444"
COLOR_NEUTRAL = "#475569"

# Amount text colors in the transaction list
COLOR_INCOME_TEXT = "#059669"
COLOR_EXPENSE_TEXT = "#dc2626"


# =============================================================================
# VALUE FORMATTING
# =============================================================================

def format_rupiah(amount: Union[Decimal, int]) -> str:
    """
    Format an amount as Indonesian Rupiah without decimals.

    Rounds half away from zero and groups thousands with dots:
    100000 -> "Rp100.000", -60000 -> "-Rp60.000".
    """
    rounded = Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    grouped = f"{abs(int(rounded)):,}".replace(",", ".")
    return f"{sign}Rp{grouped}"


def format_date_id(value: date) -> str:
    """Indonesian short date: d/m/yyyy."""
    return f"{value.day}/{value.month}/{value.year}"


def month_name(month_index: int) -> str:
    return MONTH_NAMES[month_index]


# =============================================================================
# REPORT STRUCTURE
# =============================================================================

class ReportHeader(BaseModel):
    """Lines printed at the top of a report."""
    model_config = ConfigDict(frozen=True)

    institution_name: str
    title: str
    prepared_by: str
    printed_on: str
    logo_url: Optional[str] = None

    @property
    def detail_lines(self) -> tuple[str, str]:
        return (
            f"Disusun oleh: {self.prepared_by}",
            f"Tanggal Cetak: {self.printed_on}",
        )


class ReportTable(BaseModel):
    """
    One table of a report.

    `rows` hold already formatted text. Styling hints are indices into
    the table body (0 = first row after the header).
    """
    model_config = ConfigDict(frozen=True)

    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    header_color: str = COLOR_NEUTRAL
    striped: bool = False
    right_aligned: tuple[int, ...] = ()
    bold_rows: tuple[int, ...] = ()
    bold_columns: tuple[int, ...] = ()
    # (row, column, hex color)
    cell_colors: tuple[tuple[int, int, str], ...] = ()

    def as_records(self) -> list[dict[str, str]]:
        """Rows as column-keyed dicts, for on-screen tables."""
        return [dict(zip(self.columns, row)) for row in self.rows]


def build_report_header(
    settings: InstitutionSettings,
    title: str,
    printed_on: date,
) -> ReportHeader:
    return ReportHeader(
        institution_name=settings.name,
        title=title,
        prepared_by=settings.treasurer_name,
        printed_on=format_date_id(printed_on),
        logo_url=settings.logo_url,
    )


def monthly_report_title(summary: MonthlySummary) -> str:
    return f"Laporan Keuangan Bulan {month_name(summary.month_index)} {summary.year}"


def annual_report_title(summary: AnnualSummary) -> str:
    return f"Laporan Keuangan Tahunan {summary.year}"


# =============================================================================
# TABLES
# =============================================================================

def _summary_table(heading: str, rows: list[tuple[str, Decimal]], closing_label: str, closing: Decimal) -> ReportTable:
    body = [(label, format_rupiah(value)) for label, value in rows]
    body.append((closing_label, format_rupiah(closing)))
    return ReportTable(
        columns=(heading, "Jumlah"),
        rows=tuple(body),
        header_color=COLOR_SUMMARY,
        right_aligned=(1,),
        bold_rows=(len(body) - 1,),
    )


def _breakdown_table(heading: str, items, color: str) -> ReportTable:
    return ReportTable(
        columns=(heading, "Total"),
        rows=tuple((item.name, format_rupiah(item.total)) for item in items),
        header_color=color,
        striped=True,
        right_aligned=(1,),
    )


def monthly_report_tables(
    summary: MonthlySummary,
    categories: Iterable[Category],
) -> list[ReportTable]:
    """
    Tables of a monthly report, in print order.

    Breakdown and transaction tables are omitted when they would be empty.
    """
    names = {c.id: c.name for c in categories}

    tables = [
        _summary_table(
            "Ringkasan Keuangan",
            [
                ("Total Pemasukan", summary.total_income),
                ("Total Pengeluaran", summary.total_expense),
            ],
            "Saldo Akhir",
            summary.balance,
        )
    ]

    if summary.income_breakdown:
        tables.append(
            _breakdown_table("Rincian Pemasukan", summary.income_breakdown, COLOR_INCOME)
        )
    if summary.expense_breakdown:
        tables.append(
            _breakdown_table("Rincian Pengeluaran", summary.expense_breakdown, COLOR_EXPENSE)
        )

    if summary.transactions:
        rows = []
        colors = []
        for idx, t in enumerate(sort_for_display(summary.transactions)):
            rows.append((
                format_date_id(t.date),
                t.description or EMPTY_DESCRIPTION,
                names.get(t.category_id, UNCATEGORIZED_LABEL),
                format_rupiah(t.amount),
            ))
            tone = COLOR_INCOME_TEXT if t.type is TransactionType.INCOME else COLOR_EXPENSE_TEXT
            colors.append((idx, 3, tone))
        tables.append(
            ReportTable(
                columns=("Tanggal", "Keterangan", "Kategori", "Jumlah"),
                rows=tuple(rows),
                header_color=COLOR_NEUTRAL,
                right_aligned=(3,),
                cell_colors=tuple(colors),
            )
        )

    return tables


def annual_report_tables(summary: AnnualSummary) -> list[ReportTable]:
    """Yearly summary followed by the twelve-month table."""
    monthly = ReportTable(
        columns=("Bulan", "Pemasukan", "Pengeluaran", "Saldo Bulan"),
        rows=tuple(
            (
                m.month,
                format_rupiah(m.total_income),
                format_rupiah(m.total_expense),
                format_rupiah(m.balance),
            )
            for m in summary.monthly_breakdown
        ),
        header_color=COLOR_NEUTRAL,
        right_aligned=(1, 2, 3),
        bold_columns=(3,),
    )
    return [
        _summary_table(
            "Ringkasan Tahunan",
            [
                ("Total Pemasukan", summary.total_yearly_income),
                ("Total Pengeluaran", summary.total_yearly_expense),
            ],
            "Saldo Akhir Tahun",
            summary.yearly_balance,
        ),
        monthly,
    ]


# =============================================================================
# FILE NAMES
# =============================================================================

def _name_for_file(name: str) -> str:
    return re.sub(r"\s", "_", name)


def monthly_report_filename(settings: InstitutionSettings, year: int, month_index: int) -> str:
    return f"Laporan_Bulanan_{_name_for_file(settings.name)}_{month_name(month_index)}_{year}.pdf"


def annual_report_filename(settings: InstitutionSettings, year: int) -> str:
    return f"Laporan_Tahunan_{_name_for_file(settings.name)}_{year}.pdf"
