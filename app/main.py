"""
Streamlit Frontend for Pondok Ledger

This is the interface the treasurer of the pondok uses daily.

DESIGN PRINCIPLES:
1. Simple, clear interface in Bahasa Indonesia
2. Explicit confirmation before anything is deleted
3. Clear error messages in simple language
4. Visual feedback for all operations

Pages:
- Dashboard: this month's totals and the latest transactions
- Transaksi: record, edit, search and delete transactions
- Laporan: monthly and annual reports with PDF export
- Pengaturan: institution identity, logo and categories
"""

import asyncio
import math
from datetime import date
from typing import Optional

import streamlit as st

from src.audit import create_correlation_id
from src.config import get_settings, validate_all_settings
from src.ledger import (
    CategoryInUseError,
    LedgerError,
    LedgerService,
    TransactionValidationError,
    create_ledger,
    migrate_local_to_sheets,
)
from src.models import (
    InstitutionSettings,
    TransactionDraft,
    TransactionType,
    amount_from_input,
)
from src.reports import (
    MONTH_NAMES,
    UNCATEGORIZED_LABEL,
    annual_report_tables,
    available_years,
    format_date_id,
    format_rupiah,
    monthly_report_tables,
)
from src.services.image import LogoServiceError
from src.services.storage import StorageError
from src.validation import get_user_friendly_summary


# Page configuration
st.set_page_config(
    page_title="Pondok Ledger",
    page_icon="🕌",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_ledger() -> LedgerService:
    """Get or create the ledger service (cached)."""
    ledger = create_ledger()
    run_async(ledger.ensure_default_categories())
    return ledger


def main():
    """Main application entry point."""
    try:
        ledger = get_ledger()
    except StorageError as e:
        st.error(f"Gagal membuka data: {e}")
        st.stop()

    settings = run_async(ledger.get_settings())

    st.sidebar.title(f"🕌 {settings.name}")
    st.sidebar.caption(settings.address)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Menu",
        ["📊 Dashboard", "💸 Transaksi", "📄 Laporan", "⚙️ Pengaturan"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(ledger)
    elif page == "💸 Transaksi":
        render_transactions_page(ledger)
    elif page == "📄 Laporan":
        render_reports_page(ledger)
    elif page == "⚙️ Pengaturan":
        render_settings_page(ledger)


def _category_names(ledger: LedgerService) -> dict[str, str]:
    return {c.id: c.name for c in run_async(ledger.list_categories())}


def _transaction_rows(transactions, names: dict[str, str]) -> list[dict[str, str]]:
    return [
        {
            "Tanggal": format_date_id(t.date),
            "Keterangan": t.description or "-",
            "Kategori": names.get(t.category_id, UNCATEGORIZED_LABEL),
            "Jenis": t.type.label,
            "Jumlah": format_rupiah(t.amount),
        }
        for t in transactions
    ]


def render_dashboard_page(ledger: LedgerService):
    """Render this month's overview."""
    today = date.today()
    st.title("📊 Dashboard")
    st.markdown(f"Ringkasan bulan **{MONTH_NAMES[today.month - 1]} {today.year}**")

    summary = run_async(ledger.dashboard(today))
    month = summary.month

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Pemasukan", format_rupiah(month.total_income))
    col2.metric("Total Pengeluaran", format_rupiah(month.total_expense))
    col3.metric("Saldo Bulan Ini", format_rupiah(month.balance))

    st.bar_chart(
        {
            "Jenis": ["Pemasukan", "Pengeluaran"],
            "Jumlah": [float(month.total_income), float(month.total_expense)],
        },
        x="Jenis",
        y="Jumlah",
    )

    st.subheader("Transaksi Terakhir")
    if summary.recent_transactions:
        st.table(_transaction_rows(summary.recent_transactions, _category_names(ledger)))
    else:
        st.info("Belum ada transaksi. Catat transaksi pertama di halaman Transaksi.")


def _transaction_form(ledger: LedgerService, key: str, initial=None) -> Optional[TransactionDraft]:
    """Render the add/edit form; returns a draft when submitted."""
    categories = run_async(ledger.list_categories())

    with st.form(key, clear_on_submit=initial is None):
        col1, col2 = st.columns(2)
        with col1:
            tx_date = st.date_input(
                "Tanggal",
                value=initial.date if initial else date.today(),
                format="DD/MM/YYYY",
            )
            tx_type = st.radio(
                "Jenis",
                options=list(TransactionType),
                index=list(TransactionType).index(initial.type) if initial else 0,
                format_func=lambda t: t.label,
                horizontal=True,
            )
            amount = st.number_input(
                "Jumlah (Rp)",
                min_value=0.0,
                step=1000.0,
                format="%.2f",
                value=float(initial.amount) if initial else 0.0,
            )
        with col2:
            ids = [""] + [c.id for c in categories]
            names = {c.id: f"{c.name} ({c.type.label})" for c in categories}
            category_id = st.selectbox(
                "Kategori",
                options=ids,
                index=ids.index(initial.category_id) if initial and initial.category_id in ids else 0,
                format_func=lambda cid: names.get(cid, "— Pilih kategori —"),
            )
            description = st.text_area(
                "Keterangan",
                value=initial.description if initial else "",
            )

        if not st.form_submit_button("💾 Simpan", type="primary"):
            return None

    try:
        return TransactionDraft(
            date=tx_date,
            type=tx_type,
            category_id=category_id,
            amount=amount_from_input(amount, initial.amount if initial else None),
            description=description,
        )
    except ValueError as e:
        st.error(f"Data transaksi tidak valid: {e}")
        return None


def _save(action, success_message: str) -> bool:
    try:
        _, result = run_async(action)
    except TransactionValidationError as e:
        st.error(get_user_friendly_summary(e.result))
        return False
    except (LedgerError, StorageError) as e:
        st.error(f"Gagal menyimpan transaksi: {e}")
        return False

    if result.warnings:
        st.warning(get_user_friendly_summary(result))
    st.success(success_message)
    return True


def render_transactions_page(ledger: LedgerService):
    """Render the transaction management page."""
    st.title("💸 Manajemen Transaksi")

    with st.expander("➕ Tambah Transaksi", expanded=False):
        draft = _transaction_form(ledger, "new_transaction")
        if draft is not None:
            _save(
                ledger.create_transaction(draft, correlation_id=create_correlation_id()),
                "Transaksi berhasil disimpan.",
            )

    st.markdown("---")

    categories = run_async(ledger.list_categories())
    names = {c.id: c.name for c in categories}

    col1, col2, col3 = st.columns(3)
    with col1:
        search = st.text_input("Cari", placeholder="Cari keterangan atau kategori...")
    with col2:
        type_filter = st.selectbox(
            "Jenis",
            options=[None] + list(TransactionType),
            format_func=lambda t: "Semua Jenis" if t is None else t.label,
        )
    with col3:
        category_filter = st.selectbox(
            "Kategori",
            options=[None] + [c.id for c in categories],
            format_func=lambda cid: "Semua Kategori" if cid is None else names[cid],
        )

    transactions = run_async(
        ledger.search_transactions(search, type_filter, category_filter)
    )
    if not transactions:
        st.info("Tidak ada transaksi yang cocok.")
        return

    page_size = get_settings().app.transactions_page_size
    pages = max(1, math.ceil(len(transactions) / page_size))
    page = st.number_input("Halaman", min_value=1, max_value=pages, value=1) if pages > 1 else 1
    shown = transactions[(page - 1) * page_size:page * page_size]

    st.caption(f"{len(transactions)} transaksi")
    for t in shown:
        label = (
            f"{format_date_id(t.date)} · {names.get(t.category_id, UNCATEGORIZED_LABEL)} · "
            f"{t.description or '-'} · "
            f"{'+' if t.is_income else '-'}{format_rupiah(t.amount)}"
        )
        with st.expander(label):
            draft = _transaction_form(ledger, f"edit_{t.id}", initial=t)
            if draft is not None:
                if _save(
                    ledger.update_transaction(t.id, draft, correlation_id=create_correlation_id()),
                    "Transaksi berhasil diperbarui.",
                ):
                    st.rerun()

            confirm = st.checkbox("Saya yakin ingin menghapus transaksi ini", key=f"confirm_{t.id}")
            if st.button("🗑️ Hapus", key=f"delete_{t.id}", disabled=not confirm):
                try:
                    run_async(ledger.delete_transaction(t.id))
                    st.rerun()
                except StorageError as e:
                    st.error(f"Gagal menghapus transaksi: {e}")


def _download(export, label: str, key: str):
    """Render the PDF on request, then offer it for download."""
    if not st.button("🖨️ Buat PDF", key=f"{key}_build"):
        return
    try:
        filename, pdf = run_async(export())
    except StorageError as e:
        st.error(f"Gagal membuat laporan: {e}")
        return
    st.download_button(
        label,
        data=pdf,
        file_name=filename,
        mime="application/pdf",
        key=key,
    )


def render_reports_page(ledger: LedgerService):
    """Render the monthly and annual reports."""
    st.title("📄 Laporan Keuangan")
    today = date.today()

    snapshot = run_async(ledger.snapshot())
    years = available_years(snapshot.transactions, today.year)

    monthly_tab, annual_tab = st.tabs(["Laporan Bulanan", "Laporan Tahunan"])

    with monthly_tab:
        col1, col2 = st.columns(2)
        month_index = col1.selectbox(
            "Bulan",
            options=list(range(12)),
            index=today.month - 1,
            format_func=lambda m: MONTH_NAMES[m],
        )
        year = col2.selectbox("Tahun", options=years, key="monthly_year")

        summary = run_async(ledger.monthly_summary(year, month_index))
        c1, c2, c3 = st.columns(3)
        c1.metric("Total Pemasukan", format_rupiah(summary.total_income))
        c2.metric("Total Pengeluaran", format_rupiah(summary.total_expense))
        c3.metric("Saldo Akhir", format_rupiah(summary.balance))

        for table in monthly_report_tables(summary, snapshot.categories)[1:]:
            st.markdown(f"**{table.columns[0]}**")
            st.table(table.as_records())

        _download(
            lambda: ledger.export_monthly_report(year, month_index, today),
            "⬇️ Unduh PDF Bulanan",
            "download_monthly",
        )

    with annual_tab:
        year = st.selectbox("Tahun", options=years, key="annual_year")
        annual = run_async(ledger.annual_summary(year))

        c1, c2, c3 = st.columns(3)
        c1.metric("Total Pemasukan Tahunan", format_rupiah(annual.total_yearly_income))
        c2.metric("Total Pengeluaran Tahunan", format_rupiah(annual.total_yearly_expense))
        c3.metric("Saldo Akhir Tahun", format_rupiah(annual.yearly_balance))

        st.bar_chart(
            {
                "Bulan": [m.month[:3] for m in annual.monthly_breakdown],
                "Pemasukan": [float(m.total_income) for m in annual.monthly_breakdown],
                "Pengeluaran": [float(m.total_expense) for m in annual.monthly_breakdown],
            },
            x="Bulan",
            y=["Pemasukan", "Pengeluaran"],
        )
        st.table(annual_report_tables(annual)[1].as_records())

        _download(
            lambda: ledger.export_annual_report(year, today),
            "⬇️ Unduh PDF Tahunan",
            "download_annual",
        )


def render_settings_page(ledger: LedgerService):
    """Render institution settings and category management."""
    st.title("⚙️ Pengaturan")

    settings = run_async(ledger.get_settings())

    st.markdown("### Profil Pondok")
    col1, col2 = st.columns([1, 3])
    with col1:
        if settings.logo_url:
            st.image(settings.logo_url, width=120)
            if st.button("Hapus Logo"):
                run_async(ledger.update_settings(settings.model_copy(update={"logo_url": None})))
                st.rerun()
        if ledger.can_upload_logo:
            logo_file = st.file_uploader("Logo Pondok", type=["png", "jpg", "jpeg", "webp"])
            if logo_file and st.button("⬆️ Unggah Logo"):
                try:
                    run_async(ledger.upload_logo(logo_file.read()))
                    st.rerun()
                except (LogoServiceError, LedgerError) as e:
                    st.error(f"Logo tidak dapat digunakan: {e}")
        else:
            st.caption("Unggah logo membutuhkan konfigurasi Cloudinary.")

    with col2:
        with st.form("institution_settings"):
            name = st.text_input("Nama Pondok", value=settings.name)
            address = st.text_area("Alamat Lengkap", value=settings.address)
            treasurer = st.text_input("Nama Bendahara", value=settings.treasurer_name)
            if st.form_submit_button("💾 Simpan Pengaturan", type="primary"):
                try:
                    run_async(ledger.update_settings(InstitutionSettings(
                        name=name,
                        address=address,
                        treasurer_name=treasurer,
                        logo_url=settings.logo_url,
                    )))
                    st.success("Pengaturan berhasil disimpan!")
                except ValueError as e:
                    st.error(f"Pengaturan tidak valid: {e}")

    st.markdown("---")
    st.markdown("### Kategori")

    with st.form("new_category", clear_on_submit=True):
        col1, col2, col3 = st.columns([3, 2, 1])
        new_name = col1.text_input("Nama Kategori")
        new_type = col2.selectbox("Jenis", options=list(TransactionType), format_func=lambda t: t.label)
        col3.markdown("&nbsp;")
        if col3.form_submit_button("➕ Tambah") and new_name.strip():
            run_async(ledger.create_category(new_name, new_type))
            st.rerun()

    types = list(TransactionType)
    for category in run_async(ledger.list_categories()):
        with st.expander(f"{category.name} ({category.type.label})"):
            with st.form(f"edit_category_{category.id}"):
                col1, col2 = st.columns([3, 2])
                edit_name = col1.text_input("Nama Kategori", value=category.name)
                edit_type = col2.selectbox(
                    "Jenis",
                    options=types,
                    index=types.index(category.type),
                    format_func=lambda t: t.label,
                )
                if st.form_submit_button("💾 Simpan Kategori"):
                    if not edit_name.strip():
                        st.error("Nama kategori tidak boleh kosong.")
                    else:
                        try:
                            run_async(ledger.update_category(category.id, edit_name, edit_type))
                            st.rerun()
                        except (LedgerError, StorageError, ValueError) as e:
                            st.error(f"Gagal menyimpan kategori: {e}")

            if st.button("🗑️ Hapus Kategori", key=f"delete_category_{category.id}"):
                try:
                    run_async(ledger.delete_category(category.id))
                    st.rerun()
                except CategoryInUseError as e:
                    st.error(
                        f"Kategori '{category.name}' tidak dapat dihapus karena "
                        f"masih dipakai oleh {e.usage_count} transaksi."
                    )

    if get_settings().app.storage_backend == "google_sheets":
        st.markdown("---")
        st.markdown("### Impor Data Lokal")
        st.caption(
            "Salin kategori, transaksi dan pengaturan dari file JSON lokal ke Google Sheets. "
            "Impor dilewati jika Google Sheets sudah berisi transaksi."
        )
        clear_source = st.checkbox("Hapus data lokal setelah impor berhasil")
        if st.button("📥 Impor ke Google Sheets"):
            try:
                report = run_async(migrate_local_to_sheets(ledger, clear_source=clear_source))
            except (LedgerError, StorageError) as e:
                st.error(f"Impor gagal: {e}")
            else:
                if report.skipped:
                    st.info("Google Sheets sudah berisi transaksi; tidak ada data yang diimpor.")
                else:
                    st.success(
                        f"Impor selesai: {report.transactions_migrated} transaksi, "
                        f"{report.categories_migrated} kategori baru, "
                        f"{report.categories_merged} kategori digabung."
                    )

    st.markdown("---")
    st.markdown("### Status Koneksi")

    status = validate_all_settings()
    services = [
        ("Cloudinary (Logo)", "cloudinary"),
        ("Google Sheets (Penyimpanan)", "google_sheets"),
    ]
    for label, key in services:
        if status.get(key, False):
            st.success(f"✅ {label} - Terkonfigurasi")
        else:
            error = status.get(f"{key}_error", "Belum dikonfigurasi")
            st.info(f"ℹ️ {label} - {error}")


if __name__ == "__main__":
    main()
