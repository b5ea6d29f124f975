"""
Streamlit Frontend for Household Ledger

The screen the family uses on their phones to run the shared cash box
at the beach house.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation at every step
3. Clear error messages in simple language
4. Visual feedback for all operations

The UI enforces the human-in-the-loop principle:
- The user sees what the assistant understood
- The user confirms or discards
- Nothing is saved without an explicit "Confirm" action
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from household_ledger.audit import create_correlation_id
from household_ledger.config import validate_all_settings
from household_ledger.ledger import LedgerError, is_settled
from household_ledger.models import (
    BookingCandidate,
    Category,
    Currency,
    ExtractionKind,
    TransactionCandidate,
    TransactionEdit,
)
from household_ledger.orchestrator import (
    BackupFlow,
    BookingFlow,
    CaptureFlow,
    LedgerFlow,
    create_app_components,
)
from household_ledger.reports import BackupFormatError
from household_ledger.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="El Eucalito",
    page_icon="🌿",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
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
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def usd(amount: Decimal) -> str:
    return f"US$ {amount:,.2f}"


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("🌿 El Eucalito")
    if components.sheets_client is None:
        st.sidebar.warning("Working in memory: nothing is saved after a restart.")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Balance", "💬 Chat", "📅 Agenda", "👥 Cousins", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Write things like:**
        - "Pablo compró insumos por 1500 pesos"
        - "Cobramos 200 dólares de la reserva"
        - "Reserva de Ana del 3 al 7 de enero, 400 USD"
        """
    )

    if page == "📊 Balance":
        render_balance_page(components.ledger)
    elif page == "💬 Chat":
        render_chat_page(components.capture)
    elif page == "📅 Agenda":
        render_agenda_page(components.bookings)
    elif page == "👥 Cousins":
        render_cousins_page(components.ledger)
    elif page == "⚙️ Settings":
        render_settings_page(components.backup)


def render_balance_page(ledger_flow: LedgerFlow):
    """Box balance, totals and the movement history."""
    st.title("📊 Balance")

    snapshot = run_async(ledger_flow.snapshot())

    col1, col2, col3 = st.columns(3)
    col1.metric("Cash in the box", usd(snapshot.current_box))
    col2.metric("Net profit", usd(snapshot.net_profit))
    col3.metric("Pending debt", usd(snapshot.total_pending_debt))

    col1, col2, col3 = st.columns(3)
    col1.metric("Expenses", usd(snapshot.total_expense))
    col2.metric("Business income", usd(snapshot.business_income))
    col3.metric("Donations", usd(snapshot.total_donations))

    if snapshot.skipped:
        st.markdown(f"""
        <div class="warning-box">
            <h4>⚠️ {len(snapshot.skipped)} record(s) could not be read</h4>
            <p>They are left out of every total. Check the spreadsheet.</p>
        </div>
        """, unsafe_allow_html=True)

    if snapshot.expenses_by_category:
        st.markdown("### Expenses by category")
        for breakdown in snapshot.expenses_by_category:
            with st.expander(f"{breakdown.category.value}: {usd(breakdown.amount)}"):
                for tx in breakdown.transactions:
                    st.markdown(f"- {tx.transaction_date:%d/%m/%Y} {tx.description} ({usd(tx.amount_usd)})")

    st.markdown("---")
    st.markdown("### History")

    history = run_async(ledger_flow.history())
    if not history:
        st.info("No movements yet. Use the Chat page to add the first one.")
        return

    for tx in history:
        label = (
            f"{tx.transaction_date:%d/%m/%Y} · {tx.category.value} · "
            f"{tx.paid_by} · {usd(tx.amount_usd)}"
        )
        with st.expander(label):
            render_transaction_editor(ledger_flow, tx)


def render_transaction_editor(ledger_flow: LedgerFlow, tx):
    st.caption(
        f"{tx.description or 'No description'} · original "
        f"{tx.original_amount} {tx.original_currency.value} · rate {tx.exchange_rate}"
    )

    with st.form(f"edit-{tx.id}"):
        description = st.text_input("Description", value=tx.description)
        category = st.selectbox(
            "Category",
            options=list(Category),
            index=list(Category).index(tx.category),
            format_func=lambda c: c.value,
        )
        paid_by = st.text_input("Paid by", value=tx.paid_by)
        original_amount = st.number_input(
            f"Amount ({tx.original_currency.value})",
            value=float(tx.original_amount if tx.original_amount is not None else tx.amount_usd),
            min_value=0.0,
            step=0.01,
            format="%.2f",
        )
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("💾 Save changes")
        delete = col2.form_submit_button("🗑️ Delete")

    if save:
        fields = {}
        if description != tx.description:
            fields["description"] = description
        if category is not tx.category:
            fields["category"] = category
        if paid_by.strip() and paid_by.strip() != tx.paid_by:
            fields["paid_by"] = paid_by
        new_amount = Decimal(str(original_amount))
        if new_amount != (tx.original_amount or tx.amount_usd):
            fields["original_amount"] = new_amount
        try:
            run_async(ledger_flow.edit(tx.id, TransactionEdit(**fields)))
            st.success("Saved.")
            st.rerun()
        except (LedgerError, StorageError, ValueError) as e:
            st.error(f"Could not save: {e}")

    if delete:
        run_async(ledger_flow.delete(tx.id))
        st.rerun()


def render_chat_page(capture_flow: CaptureFlow):
    """Message/photo → proposal → review → confirm."""
    st.title("💬 Chat")

    if "proposals" not in st.session_state:
        st.session_state.proposals = []
    if "booking_proposal" not in st.session_state:
        st.session_state.booking_proposal = None
    if "correlation_id" not in st.session_state:
        st.session_state.correlation_id = None

    if not capture_flow.can_extract:
        st.info("The assistant is not configured. Use the manual form below.")
    else:
        message = st.text_area("What happened?", placeholder="Pablo pagó la UTE, 2300 pesos")
        photo = st.file_uploader("Receipt photo (optional)", type=["jpg", "jpeg", "png", "webp"])

        if st.button("🔍 Understand", type="primary"):
            st.session_state.correlation_id = create_correlation_id()
            with st.spinner("Reading..."):
                result = run_async(capture_flow.extract(
                    message,
                    image_bytes=photo.read() if photo else None,
                    correlation_id=st.session_state.correlation_id,
                ))

            if result.is_error:
                st.markdown(f"""
                <div class="error-box">
                    <h4>🤔 I didn't get that</h4>
                    <p>{result.message}</p>
                </div>
                """, unsafe_allow_html=True)
            elif result.kind is ExtractionKind.BOOKING:
                st.session_state.booking_proposal = result.booking
            else:
                prepared = [
                    (candidate, *run_async(capture_flow.prepare(
                        candidate, correlation_id=st.session_state.correlation_id
                    )))
                    for candidate in result.transactions
                ]
                st.session_state.proposals = prepared

    with st.expander("✍️ Manual entry"):
        render_manual_form(capture_flow)

    render_proposals(capture_flow)
    render_booking_proposal(capture_flow)


def render_manual_form(capture_flow: CaptureFlow):
    with st.form("manual-entry"):
        tx_date = st.date_input("Date", value=date.today())
        description = st.text_input("Description")
        col1, col2 = st.columns(2)
        amount = col1.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
        currency = col2.selectbox("Currency", options=[c.value for c in Currency])
        category = st.selectbox("Category", options=[c.value for c in Category])
        paid_by = st.text_input("Paid by")
        submitted = st.form_submit_button("Review")

    if submitted:
        st.session_state.correlation_id = create_correlation_id()
        candidate = TransactionCandidate(
            transaction_date=tx_date,
            description=description,
            original_amount=Decimal(str(amount)),
            original_currency=currency,
            category=category,
            paid_by=paid_by,
        )
        validation, tx = run_async(capture_flow.prepare(
            candidate, correlation_id=st.session_state.correlation_id
        ))
        st.session_state.proposals = [(candidate, validation, tx)]


def render_proposals(capture_flow: CaptureFlow):
    proposals = st.session_state.proposals
    if not proposals:
        return

    st.markdown("---")
    st.subheader("📋 Please confirm")

    remaining = []
    for index, (candidate, validation, tx) in enumerate(proposals):
        summary = capture_flow.summarize(validation)

        if tx is None:
            st.markdown(f"""
            <div class="error-box"><p>{summary.replace(chr(10), '<br>')}</p></div>
            """, unsafe_allow_html=True)
        else:
            box = "success-box" if not validation.warnings else "warning-box"
            st.markdown(f"""
            <div class="{box}">
                <h4>{tx.category.value}: {usd(tx.amount_usd)}</h4>
                <p><strong>Paid by:</strong> {tx.paid_by}</p>
                <p><strong>Date:</strong> {tx.transaction_date:%d/%m/%Y}</p>
                <p><strong>Description:</strong> {tx.description}</p>
                <p><strong>Original:</strong> {tx.original_amount} {tx.original_currency.value}
                   (rate {tx.exchange_rate}, {tx.rate_source.value})</p>
                <p>{summary.replace(chr(10), '<br>')}</p>
            </div>
            """, unsafe_allow_html=True)

        col1, col2 = st.columns(2)
        confirmed = tx is not None and col1.button("✅ Confirm", key=f"confirm-{index}")
        discarded = col2.button("❌ Discard", key=f"discard-{index}")

        if confirmed:
            try:
                saved = run_async(capture_flow.confirm_and_save(
                    tx,
                    candidate_id=candidate.candidate_id,
                    correlation_id=st.session_state.correlation_id,
                ))
                st.success(f"Saved {saved.category.value} of {usd(saved.amount_usd)}.")
            except StorageError as e:
                st.error(f"Failed to save: {e}")
                remaining.append((candidate, validation, tx))
        elif discarded:
            run_async(capture_flow.reject(
                candidate,
                reason="User discarded",
                correlation_id=st.session_state.correlation_id,
            ))
        else:
            remaining.append((candidate, validation, tx))

    if len(remaining) != len(proposals):
        st.session_state.proposals = remaining
        st.rerun()


def render_booking_proposal(capture_flow: CaptureFlow):
    booking: BookingCandidate = st.session_state.booking_proposal
    if booking is None:
        return

    st.markdown("---")
    st.subheader("📅 New booking")
    st.markdown(f"""
    <div class="success-box">
        <h4>{booking.guest_name}</h4>
        <p>{booking.start_date:%d/%m/%Y} → {booking.end_date:%d/%m/%Y}</p>
        <p>{"Family stay" if booking.is_family else usd(booking.total_price_usd)}</p>
    </div>
    """, unsafe_allow_html=True)

    col1, col2 = st.columns(2)
    if col1.button("✅ Save booking"):
        try:
            run_async(capture_flow.save_booking(
                booking, correlation_id=st.session_state.correlation_id
            ))
        except StorageError as e:
            st.error(f"Could not save the booking: {e}")
        else:
            st.session_state.booking_proposal = None
            st.rerun()
    if col2.button("❌ Discard booking"):
        st.session_state.booking_proposal = None
        st.rerun()


def render_agenda_page(booking_flow: BookingFlow):
    """Bookings for a month, with payment hand-off."""
    st.title("📅 Agenda")

    today = date.today()
    col1, col2 = st.columns(2)
    year = col1.number_input("Year", value=today.year, step=1)
    month = col2.selectbox("Month", options=list(range(1, 13)), index=today.month - 1)

    bookings = run_async(booking_flow.bookings_for_month(int(year), int(month)))
    if not bookings:
        st.info("No bookings this month.")
        return

    for booking in bookings:
        status = "👪 Family" if booking.is_family else ("✅ Paid" if booking.is_paid else "⏳ Unpaid")
        with st.expander(
            f"{booking.start_date:%d/%m} → {booking.end_date:%d/%m} · {booking.guest_name} · {status}"
        ):
            if not booking.is_family:
                st.markdown(f"**Price:** {usd(booking.total_price_usd)}")
            if booking.notes:
                st.markdown(booking.notes)

            col1, col2 = st.columns(2)
            if not booking.is_family and not booking.is_paid:
                if col1.button("💵 Mark paid", key=f"pay-{booking.id}"):
                    try:
                        run_async(booking_flow.mark_paid(booking.id))
                        st.rerun()
                    except (LedgerError, StorageError) as e:
                        st.error(str(e))
            if col2.button("🗑️ Delete", key=f"delete-{booking.id}"):
                run_async(booking_flow.delete(booking.id))
                st.rerun()


def render_cousins_page(ledger_flow: LedgerFlow):
    """Per-cousin balances and settlement."""
    st.title("👥 Cousins")
    st.caption("Positive: the box owes them. Negative: they owe the box.")

    balances = run_async(ledger_flow.balances())
    for name, balance in balances.items():
        if is_settled(balance):
            st.markdown(f"**{name}**: settled")
        elif balance > 0:
            st.markdown(f"**{name}**: the box owes {usd(balance)}")
        else:
            st.markdown(f"**{name}**: owes the box {usd(-balance)}")

    open_names = [name for name, balance in balances.items() if not is_settled(balance)]
    if not open_names:
        return

    st.markdown("---")
    st.subheader("Settle a balance")
    with st.form("settle"):
        name = st.selectbox("Cousin", options=open_names)
        amount = st.number_input(
            "Amount (USD)",
            min_value=0.01,
            value=float(abs(balances[open_names[0]])),
            step=0.01,
            format="%.2f",
        )
        submitted = st.form_submit_button("Settle")

    if submitted:
        try:
            tx = run_async(ledger_flow.settle(name, Decimal(str(amount))))
            st.success(f"Recorded {tx.category.value} of {usd(tx.amount_usd)} for {name}.")
            st.rerun()
        except (LedgerError, StorageError) as e:
            st.error(str(e))


def render_settings_page(backup_flow: BackupFlow):
    """Connection status, exports, restore and wipe."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()
    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (Assistant)", "gemini"),
        ("Exchange rates", "rates"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Export")
    col1, col2 = st.columns(2)
    col1.download_button(
        "⬇️ CSV report",
        data=run_async(backup_flow.export_csv()),
        file_name=f"eucalito-{date.today().isoformat()}.csv",
        mime="text/csv",
    )
    col2.download_button(
        "⬇️ JSON backup",
        data=run_async(backup_flow.export_json()),
        file_name=f"eucalito-backup-{date.today().isoformat()}.json",
        mime="application/json",
    )

    st.markdown("### Restore")
    st.caption("Records are added as new. Clear first to avoid duplicates.")
    uploaded = st.file_uploader("Backup file", type=["json"])
    if uploaded and st.button("♻️ Restore"):
        try:
            contents = run_async(backup_flow.restore(uploaded.read().decode("utf-8")))
            st.success(
                f"Restored {len(contents.transactions)} transactions and "
                f"{len(contents.bookings)} bookings."
            )
            if contents.rejected:
                st.warning(f"{len(contents.rejected)} entries could not be read and were skipped.")
        except (BackupFormatError, UnicodeDecodeError) as e:
            st.error(f"Not a valid backup: {e}")

    st.markdown("### Danger zone")
    sure = st.checkbox("I understand this deletes every transaction and booking")
    if st.button("🗑️ Clear everything", disabled=not sure):
        transactions, bookings = run_async(backup_flow.clear())
        st.success(f"Deleted {transactions} transactions and {bookings} bookings.")


if __name__ == "__main__":
    main()
