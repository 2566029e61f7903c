"""
Streamlit entry point — Brand Import UI.

Drives one ImportSession per uploaded file:
  1. Sidebar settings (storage folder, collection, write mode)
  2. File upload (CSV or JSON)
  3. Column mapping review
  4. Duplicate resolution, one collision at a time
  5. Tag cleaning
  6. Summary, quality report and normalized CSV download

A separate section runs AI enrichment over the stored collection.

Contains NO business logic — only calls processing modules and displays results.
"""

import logging
from dataclasses import replace
from pathlib import Path

import pandas as pd
import streamlit as st

from output.collection_store import JsonCollectionStore
from output.csv_exporter import export_normalized, generate_csv
from processing.column_mapper import review_mapping
from processing.file_reader import FormatError, detect_source_kind
from processing.import_session import (
    ImportSession,
    ImportState,
    InvalidMappingError,
)
from processing.llm_enricher import enrich_with_llm, needs_enrichment
from processing.normalizer import get_price_label

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_STORAGE_ROOT = "data/collections"


# ═══════════════════════════════════════════════════════════════════════════
# Page configuration
# ═══════════════════════════════════════════════════════════════════════════

st.set_page_config(
    page_title="Brand Import",
    page_icon="🗂️",
    layout="wide",
    initial_sidebar_state="expanded",
)


# ═══════════════════════════════════════════════════════════════════════════
# Session state initialisation
# ═══════════════════════════════════════════════════════════════════════════

def _init_session_state() -> None:
    """Ensure all required session state keys exist with sensible defaults."""
    defaults: dict = {
        "import_session": None,
        "uploaded_name": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _reset_import() -> None:
    st.session_state["import_session"] = None
    st.session_state["uploaded_name"] = None


_init_session_state()


# ═══════════════════════════════════════════════════════════════════════════
# Sidebar — Settings
# ═══════════════════════════════════════════════════════════════════════════

st.sidebar.title("⚙️ Settings")

api_key = st.secrets.get("ANTHROPIC_API_KEY", None)
if api_key:
    st.sidebar.success("AI enrichment available")
else:
    st.sidebar.info("No ANTHROPIC_API_KEY in secrets — AI enrichment disabled")

st.sidebar.divider()

storage_root = st.sidebar.text_input("Storage folder", value=DEFAULT_STORAGE_ROOT)
collection_id = st.sidebar.text_input("Collection id", value="my-collection")
write_mode = st.sidebar.radio(
    "Import mode",
    options=["append", "replace"],
    format_func=lambda mode: "Append to collection" if mode == "append" else "Replace collection",
)

collection_store = JsonCollectionStore(Path(storage_root))


# ═══════════════════════════════════════════════════════════════════════════
# Step 1 — Upload
# ═══════════════════════════════════════════════════════════════════════════

st.title("🗂️ Brand Import")

uploaded_file = st.file_uploader("Upload a CSV or JSON export", type=["csv", "json"])

if uploaded_file is not None and uploaded_file.name != st.session_state["uploaded_name"]:
    try:
        source_kind = detect_source_kind(uploaded_file.name, uploaded_file.type)
        session = ImportSession(collection_store, collection_id, write_mode)
        session.start(uploaded_file.getvalue().decode("utf-8-sig"), source_kind)
    except (FormatError, ValueError, UnicodeDecodeError) as exc:
        st.error(str(exc))
        logger.error(f"Could not start import of '{uploaded_file.name}': {exc}")
    else:
        st.session_state["import_session"] = session
        st.session_state["uploaded_name"] = uploaded_file.name

session: ImportSession | None = st.session_state["import_session"]

if session is not None and session.state == ImportState.ABORTED:
    st.error(session.error or "Import cancelled.")
    if st.button("Start over"):
        _reset_import()
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════
# Step 2 — Column mapping review
# ═══════════════════════════════════════════════════════════════════════════

if session is not None and session.state == ImportState.MAPPING_REVIEW:
    st.header("Column mapping")
    st.caption(f"{session.raw_table.row_count} rows found in '{st.session_state['uploaded_name']}'")

    review = review_mapping(session.raw_table.headers, session.mapping, session.config)
    header_options = ["— not imported —"] + session.raw_table.headers

    edited_mapping: dict[str, str] = {}
    for schema_field in session.config.fields:
        current = review.mapping.get(schema_field)
        label = schema_field.replace("_", " ")
        if schema_field in review.suggestions:
            suggested, score = review.suggestions[schema_field]
            label += f" (suggestion: {session.raw_table.original_headers.get(suggested, suggested)}, {score}%)"
        choice = st.selectbox(
            label,
            options=header_options,
            index=header_options.index(current) if current else 0,
            format_func=lambda h: session.raw_table.original_headers.get(h, h),
            key=f"mapping_{schema_field}",
        )
        if choice != header_options[0]:
            edited_mapping[schema_field] = choice

    if session.error:
        st.warning(session.error)

    st.dataframe(session.raw_table.dataframe.head(10), use_container_width=True)

    st.download_button(
        label="📥 Download normalized CSV",
        data=export_normalized(session.raw_table, edited_mapping, session.config),
        file_name="normalized_stores.csv",
        mime="text/csv",
    )

    col_confirm, col_cancel = st.columns(2)
    if col_confirm.button("Confirm mapping", type="primary"):
        try:
            session.confirm_mapping(edited_mapping)
        except InvalidMappingError as exc:
            for problem in exc.problems:
                st.error(problem)
        except OSError as exc:
            st.error(f"Saving the collection failed: {exc}")
        else:
            st.rerun()
    if col_cancel.button("Cancel import"):
        session.abort()
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════
# Step 3 — Duplicate resolution
# ═══════════════════════════════════════════════════════════════════════════

if session is not None and session.state == ImportState.COLLISION_REVIEW:
    collision = session.current_collision
    st.header("Duplicate found")
    st.caption(f"{session.pending_collisions} duplicate(s) left to resolve")

    col_existing, col_incoming = st.columns(2)
    for column, title, record in (
        (col_existing, "In collection", collision.existing),
        (col_incoming, "In file", collision.incoming),
    ):
        column.subheader(title)
        column.write(f"**{record.store_name}**")
        column.write(record.website or "—")
        column.write(", ".join(record.tags) or "—")
        column.write(get_price_label(record.price_range) or "—")
        column.write(record.description or "—")

    col_merge, col_overwrite, col_skip, col_cancel = st.columns(4)
    try:
        if col_merge.button("Merge", type="primary"):
            session.resolve("merge")
            st.rerun()
        if col_overwrite.button("Overwrite"):
            session.resolve("overwrite")
            st.rerun()
        if col_skip.button("Skip"):
            session.resolve("skip")
            st.rerun()
    except OSError as exc:
        st.error(f"Saving the collection failed: {exc}")
    if col_cancel.button("Cancel import"):
        session.abort()
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════
# Step 4 — Tag cleaning
# ═══════════════════════════════════════════════════════════════════════════

if session is not None and session.state == ImportState.TAG_REVIEW:
    st.header("Similar tags")
    st.caption("Pick the label to keep for each group.")

    choices: dict[int, str] = {}
    for index, group in enumerate(session.tag_groups):
        choices[index] = st.radio(
            f"Group {index + 1}",
            options=list(group.members),
            horizontal=True,
            key=f"tag_group_{index}",
        )

    col_apply, col_skip, col_cancel = st.columns(3)
    try:
        if col_apply.button("Merge tags and import", type="primary"):
            session.apply_tag_choices(choices)
            st.rerun()
        if col_skip.button("Keep tags as they are"):
            session.skip_tag_cleaning()
            st.rerun()
    except OSError as exc:
        st.error(f"Saving the collection failed: {exc}")
    if col_cancel.button("Cancel import"):
        session.abort()
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════
# Step 5 — Results
# ═══════════════════════════════════════════════════════════════════════════

if session is not None and session.state == ImportState.COMMITTED:
    summary = session.summary
    st.header("✅ Import complete")

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Rows read", summary.rows_read)
    col2.metric("Added", summary.added)
    col3.metric("Updated", summary.updated)
    col4.metric("Skipped", summary.skipped_rows + summary.skipped_collisions)

    report = session.quality_report
    if report is not None:
        with st.expander("Quality report", expanded=not report.is_clean):
            st.dataframe(
                pd.DataFrame({
                    "Blank": report.blank_counts,
                    "Blank %": report.blank_percentages,
                }),
                use_container_width=True,
            )
            if report.unknown_prices:
                st.warning(f"{len(report.unknown_prices)} price values were not recognized")
            if report.duplicate_name_keys:
                st.warning(f"Repeated names in file: {', '.join(report.duplicate_name_keys)}")
            if report.exceeds_capacity:
                st.error("The collection is above its store limit")
            if report.normalization_log:
                st.dataframe(pd.DataFrame(report.normalization_log), use_container_width=True)

    st.download_button(
        "Download normalized CSV",
        data=generate_csv(session.final_records),
        file_name=f"normalized_{Path(st.session_state['uploaded_name'] or 'import').stem}.csv",
        mime="text/csv",
    )

    if st.button("Import another file"):
        _reset_import()
        st.rerun()


# ═══════════════════════════════════════════════════════════════════════════
# AI enrichment
# ═══════════════════════════════════════════════════════════════════════════

st.divider()
st.header("✨ AI enrichment")

try:
    stored = collection_store.load(collection_id)
except ValueError as exc:
    st.error(str(exc))
    stored = None

if stored is not None:
    candidates = [s for s in stored.stores if needs_enrichment(s)]
    st.caption(f"{len(candidates)} of {len(stored.stores)} stores are missing a website or description")

    if st.button("Enrich collection", disabled=not (api_key and candidates)):
        with st.spinner("Asking Claude…"):
            enrichment = enrich_with_llm(list(stored.stores), api_key)
        if enrichment.enriched_items:
            collection_store.save(replace(stored, stores=tuple(enrichment.records)))
        st.success(
            f"Filled {len(enrichment.enriched_items)} fields "
            f"(est. cost ${enrichment.api_cost_estimate:.4f})"
        )
        if enrichment.failed_batches:
            st.warning(f"{enrichment.failed_batches} batches failed and were skipped")
