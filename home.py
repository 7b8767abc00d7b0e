from __future__ import annotations

import streamlit as st
import pandas as pd

from greenstock.config import get_settings
from greenstock.db import get_conn
from greenstock.ledger import Ledger
from greenstock.services.inventory import balance_timeline, stock_stats
from greenstock.storage import SqliteStateStore

st.set_page_config(page_title="GreenStock", page_icon="🌱", layout="wide")

settings = get_settings()
ledger = Ledger.load(SqliteStateStore(get_conn(settings.db_path)))

st.title("🌱 GreenStock: Batch Ledger")
st.caption("Purchases, exits, chemical analyses and production orders, tracked per batch.")

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

for w in ledger.load_warnings:
    st.warning(w, icon="⚠️")

physical = [m for m in ledger.movements if not m.is_service]
stats = stock_stats(physical)
c1, c2, c3 = st.columns(3)
c1.metric("Physical stock (kg)", f"{stats.total_stock:,.1f}")
c2.metric(f"Stock value ({settings.currency})", f"{stats.total_value:,.2f}")
c3.metric("Open batches", len(ledger.available_batches()))

st.subheader("Balance evolution")
window = st.selectbox("Period", options=["7", "30", "90", "all"], index=1, format_func=lambda v: "All" if v == "all" else f"Last {v} days")
points = balance_timeline(physical, days=None if window == "all" else int(window))
if points:
    st.line_chart(pd.DataFrame(points).set_index("date"))
else:
    st.info(
        "No movements yet. Start with **💾 Data Management** to load demo data, or register suppliers and products first.",
        icon="ℹ️",
    )

st.subheader("Stock by product")
stock = ledger.stock()
if stock:
    df = pd.DataFrame([{"product": b.product_name, "kg": b.remaining_quantity} for b in stock if not b.is_service])
    if not df.empty:
        st.bar_chart(df.groupby("product")["kg"].sum())
