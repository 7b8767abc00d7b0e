from __future__ import annotations

import streamlit as st

from greenstock.config import get_settings
from greenstock.logging_config import configure_logging

st.set_page_config(page_title="GreenStock", page_icon="🌱", layout="wide")

configure_logging(get_settings().log_level)

pages = [
    st.Page("home.py", title="Dashboard", icon="🏠"),
    st.Page("pages/1_📥_Movements.py", title="Entries & Exits", icon="📥"),
    st.Page("pages/2_📦_Stock.py", title="Current Stock", icon="📦"),
    st.Page("pages/3_🏭_Processing.py", title="Processing", icon="🏭"),
    st.Page("pages/4_🧪_Analysis.py", title="Chemical Analysis", icon="🧪"),
    st.Page("pages/5_💼_Labor.py", title="M.O. Billing & Returns", icon="💼"),
    st.Page("pages/6_🗂️_Registries.py", title="Registries", icon="🗂️"),
    st.Page("pages/7_💾_Data_Management.py", title="Data Management", icon="💾"),
]

st.navigation(pages).run()
