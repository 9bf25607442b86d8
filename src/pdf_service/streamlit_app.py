import os
import time

import requests
import streamlit as st

API_BASE = os.getenv("PDF_SERVICE_API_BASE", os.getenv("API_BASE", "http://localhost:8080")).rstrip("/")
POLL_INTERVAL_SEC = float(os.getenv("PDF_SERVICE_UI_POLL_INTERVAL", "1.0"))

PAGE_SIZES = ["A4", "Letter", "Legal", "A3", "A5", "Tabloid"]
MARGINS = ["normal", "none", "narrow", "wide"]


class ClientError(Exception):
    pass


def start_job(name: str, data: bytes, options: dict[str, str], *, api_base: str = API_BASE) -> str:
    files = {"htmlFile": (name, data, "text/html")}
    try:
        resp = requests.post(f"{api_base}/convert", files=files, data=options, timeout=60)
    except requests.RequestException as e:
        raise ClientError(f"Failed to connect to API: {e}") from e
    if resp.status_code != 200:
        raise ClientError(f"Upload failed: {resp.status_code} {resp.text}")
    return str(resp.json()["jobId"])


def poll_progress(job_id: str, *, api_base: str = API_BASE) -> dict[str, object]:
    # Transient network errors get a few retries with backoff
    max_attempts = 5
    backoff = 0.5
    for attempt in range(1, max_attempts + 1):
        try:
            resp = requests.get(f"{api_base}/progress/{job_id}", timeout=30)
        except requests.RequestException as e:
            if attempt < max_attempts:
                time.sleep(backoff)
                backoff *= 1.5
                continue
            raise ClientError(f"Status check failed: {e}") from e
        if resp.status_code == 200:
            return resp.json()
        if 500 <= resp.status_code < 600 and attempt < max_attempts:
            time.sleep(backoff)
            backoff *= 1.5
            continue
        raise ClientError(f"Status error: {resp.status_code} {resp.text}")
    raise ClientError("Status error after retries")


def download_pdf(file_name: str, *, api_base: str = API_BASE) -> bytes:
    try:
        resp = requests.get(f"{api_base}/download/{file_name}", timeout=60)
    except requests.RequestException as e:
        raise ClientError(f"Download failed: {e}") from e
    if resp.status_code != 200:
        raise ClientError(f"Download error: {resp.status_code} {resp.text}")
    return resp.content


def _reset_state():
    for key in ["job_id", "status", "progress", "file_name", "pdf_bytes", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear the previous upload widget
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def main() -> None:
    st.set_page_config(page_title="HTML to PDF", page_icon="📄", layout="centered")
    st.title("📄 HTML to PDF")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload an HTML document",
        type=["html", "htm"],
        key=f"uploader-{st.session_state['upload_key']}",
    )

    col1, col2 = st.columns(2)
    with col1:
        page_size = st.selectbox("Page size", PAGE_SIZES)
        margin = st.selectbox("Margins", MARGINS)
    with col2:
        orientation = st.radio("Orientation", ["portrait", "landscape"], horizontal=True)
        scale = st.slider("Scale", min_value=0.1, max_value=2.0, value=1.0, step=0.1)

    if uploaded and "job_id" not in st.session_state and st.button("Convert", type="primary"):
        options = {"pageSize": page_size, "orientation": orientation, "margin": margin, "scale": str(scale)}
        try:
            with st.spinner("Uploading..."):
                st.session_state["job_id"] = start_job(uploaded.name, uploaded.getvalue(), options)
            st.session_state["status"] = "starting"
            st.session_state["progress"] = 0
        except ClientError as e:
            st.session_state["error"] = str(e)

    if "job_id" in st.session_state and "pdf_bytes" not in st.session_state and "error" not in st.session_state:
        job_id = st.session_state["job_id"]
        with st.status("Converting...", expanded=True) as status_box:
            text_slot = st.empty()
            prog_slot = st.empty()
            while True:
                try:
                    data = poll_progress(job_id)
                except ClientError as e:
                    st.session_state["error"] = str(e)
                    break
                st.session_state["status"] = str(data.get("status", "unknown"))
                st.session_state["progress"] = int(data.get("progress", 0))
                text_slot.write(str(data.get("message", st.session_state["status"])))
                prog_slot.progress(min(max(st.session_state["progress"], 0), 100))

                if st.session_state["status"] == "completed":
                    st.session_state["file_name"] = str(data.get("fileName"))
                    status_box.update(label="Conversion complete", state="complete")
                    break
                if st.session_state["status"] in {"error", "unknown"}:
                    st.session_state["error"] = str(data.get("message", "Conversion failed"))
                    status_box.update(label="Conversion failed", state="error")
                    break
                time.sleep(POLL_INTERVAL_SEC)

        if st.session_state.get("status") == "completed":
            try:
                st.session_state["pdf_bytes"] = download_pdf(st.session_state["file_name"])
            except ClientError as e:
                st.session_state["error"] = str(e)

    if "pdf_bytes" in st.session_state:
        st.success("PDF ready!")
        st.download_button(
            label="Download PDF",
            data=st.session_state["pdf_bytes"],
            file_name=st.session_state.get("file_name", "document.pdf"),
            mime="application/pdf",
        )

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
