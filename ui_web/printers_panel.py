import os
from typing import Any, Dict, List

import requests
import streamlit as st

PAPER_WIDTHS = ["80mm", "58mm"]
PRINT_MODES = {"direct": "Direct (print agent)", "browser": "Browser dialog"}
PRINTER_MODELS = {"standard": "Standard", "zkt-eco": "ZKT Eco"}


# ============================
# Config API
# ============================
def _get_api_url() -> str:
    # Prioridad: st.secrets -> env -> default local
    url = st.secrets.get("COMANDA_API_URL", None) if hasattr(st, "secrets") else None
    if not url:
        url = os.getenv("COMANDA_API_URL", "http://127.0.0.1:8000")
    return (url or "").rstrip("/")


def load_config(api: str, timeout: int = 5) -> Dict[str, Any]:
    r = requests.get(f"{api}/config/printer", timeout=timeout)
    r.raise_for_status()
    return r.json()


def save_config(api: str, config: Dict[str, Any], timeout: int = 5) -> Dict[str, Any]:
    r = requests.put(f"{api}/config/printer", json=config, timeout=timeout)
    r.raise_for_status()
    return r.json()["config"]


@st.cache_data(ttl=10)
def fetch_printers(api: str, timeout: int = 10) -> Dict[str, Any]:
    r = requests.get(f"{api}/print/printers", timeout=timeout)
    r.raise_for_status()
    return r.json()


def send_test_print(api: str, timeout: int = 30) -> Dict[str, Any]:
    r = requests.post(f"{api}/config/printer/test", timeout=timeout)
    r.raise_for_status()
    return r.json()


def fetch_jobs(api: str, status: str = "", timeout: int = 5) -> List[Dict[str, Any]]:
    params = {"status": status} if status else {}
    r = requests.get(f"{api}/print/jobs", params=params, timeout=timeout)
    r.raise_for_status()
    return r.json()["items"]


def fetch_stuck(api: str, minutes: int, timeout: int = 5) -> List[Dict[str, Any]]:
    r = requests.get(f"{api}/print/jobs/stuck", params={"minutes": minutes}, timeout=timeout)
    r.raise_for_status()
    return r.json()["items"]


def release_job(api: str, job_id: int, timeout: int = 5):
    r = requests.post(f"{api}/print/jobs/{job_id}/release", timeout=timeout)
    r.raise_for_status()


def requeue_job(api: str, job_id: int, timeout: int = 5):
    r = requests.post(f"{api}/print/jobs/{job_id}/requeue", timeout=timeout)
    r.raise_for_status()


def _error_text(e: requests.RequestException) -> str:
    response = getattr(e, "response", None)
    if response is not None:
        try:
            return str(response.json().get("detail") or response.text)
        except ValueError:
            return response.text
    return str(e)


# ============================
# Pantallas
# ============================
def show_printers_panel():
    st.markdown("## Printer")
    api = _get_api_url()

    try:
        cfg = load_config(api)
    except requests.RequestException as e:
        st.error(f"Cannot reach the backend at {api}: {_error_text(e)}")
        return

    col_left, col_right = st.columns([2, 1])
    with col_right:
        if st.button("🔄 Refresh printers", key="printer_refresh_btn"):
            fetch_printers.clear()

    try:
        found = fetch_printers(api)
    except requests.RequestException as e:
        found = {"connected": False, "printers": []}
        st.warning(f"Printer list unavailable: {_error_text(e)}")

    with col_left:
        if found.get("connected"):
            st.success("Print agent connected")
        else:
            st.info("Print agent not connected. Browser mode still works.")

        mode = st.radio(
            "Print mode",
            list(PRINT_MODES),
            format_func=PRINT_MODES.get,
            index=list(PRINT_MODES).index(cfg.get("print_mode", "direct")),
            key="printer_mode_radio",
        )

        names = list(found.get("printers") or [])
        # sin impresora guardada se propone la predeterminada del sistema
        current = cfg.get("printer_name") or found.get("default")
        if current and current not in names:
            # la guardada sigue visible aunque el agente no la reporte
            names.insert(0, current)
        printer = None
        if names:
            printer = st.selectbox(
                "Printer",
                names,
                index=names.index(current) if current in names else 0,
                key="printer_selectbox",
                disabled=(mode == "browser"),
            )
        elif mode == "direct":
            st.warning("No printers found on the print agent.")

        paper = st.selectbox(
            "Paper width",
            PAPER_WIDTHS,
            index=PAPER_WIDTHS.index(cfg.get("paper_width", "80mm")),
            key="printer_paper_select",
        )
        model = st.selectbox(
            "Printer model",
            list(PRINTER_MODELS),
            format_func=PRINTER_MODELS.get,
            index=list(PRINTER_MODELS).index(cfg.get("printer_model", "standard")),
            key="printer_model_select",
        )
        auto_print = st.checkbox(
            "Print kitchen tickets automatically",
            value=bool(cfg.get("auto_print")),
            key="printer_auto_checkbox",
        )

    if st.button("💾 Save", key="printer_save_btn"):
        new_cfg = {
            "printer_name": printer if printer else cfg.get("printer_name"),
            "paper_width": paper,
            "print_mode": mode,
            "printer_model": model,
            "auto_print": auto_print,
        }
        try:
            cfg = save_config(api, new_cfg)
            st.success("Printer settings saved")
        except requests.RequestException as e:
            st.error(f"Could not save: {_error_text(e)}")

    st.markdown("### Test print")
    if st.button("🖨️ Send test page", key="test_print_btn"):
        try:
            send_test_print(api)
            st.success("Test page sent")
        except requests.RequestException as e:
            st.error(f"Test print failed: {_error_text(e)}")


def show_queue_panel():
    st.markdown("## Print queue")
    api = _get_api_url()

    status = st.selectbox(
        "Status",
        ["", "pendente", "imprimindo", "impresso", "falhou"],
        format_func=lambda s: s or "all",
        key="queue_status_select",
    )
    try:
        jobs = fetch_jobs(api, status)
    except requests.RequestException as e:
        st.error(f"Cannot load jobs: {_error_text(e)}")
        return

    if jobs:
        st.dataframe(jobs, use_container_width=True)
    else:
        st.info("No jobs.")

    st.markdown("### Stuck jobs")
    minutes = st.number_input("In progress for more than (minutes)", min_value=1, value=10, step=1)
    try:
        stuck = fetch_stuck(api, int(minutes))
    except requests.RequestException as e:
        st.error(f"Cannot load stuck jobs: {_error_text(e)}")
        return

    for job in stuck:
        c1, c2 = st.columns([3, 1])
        c1.write(f"#{job['id']} · {job['kind']} · order {job.get('order_id') or '-'} · since {job.get('claimed_at')}")
        if c2.button("Release", key=f"release_{job['id']}"):
            try:
                release_job(api, job["id"])
                st.success(f"Job #{job['id']} back to pending")
            except requests.RequestException as e:
                st.error(f"Release failed: {_error_text(e)}")
    if not stuck:
        st.caption("Nothing stuck.")

    st.markdown("### Failed jobs")
    try:
        failed = fetch_jobs(api, "falhou")
    except requests.RequestException as e:
        st.error(f"Cannot load failed jobs: {_error_text(e)}")
        return

    for job in failed:
        c1, c2 = st.columns([3, 1])
        c1.write(f"#{job['id']} · {job['kind']} · {job.get('attempts')} attempts · {job.get('last_error') or '-'}")
        if c2.button("Retry", key=f"requeue_{job['id']}"):
            try:
                requeue_job(api, job["id"])
                st.success(f"Job #{job['id']} queued again")
            except requests.RequestException as e:
                st.error(f"Retry failed: {_error_text(e)}")
    if not failed:
        st.caption("No failed jobs.")
