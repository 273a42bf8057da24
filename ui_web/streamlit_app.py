from printers_panel import show_printers_panel, show_queue_panel
import streamlit as st

st.set_page_config(
    page_title="Comanda · Printing",
    page_icon="🧾",
    layout="wide"
)

tab_printer, tab_queue = st.tabs(["🖨️ Printer", "📋 Queue"])

with tab_printer:
    show_printers_panel()

with tab_queue:
    show_queue_panel()
