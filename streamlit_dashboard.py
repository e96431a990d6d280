"""
Streamlit Dashboard for Face Access Control
"""

import os
import time
import uuid
from datetime import date, datetime, time as dt_time, timezone
from typing import Dict, Optional

import numpy as np
import pandas as pd
import requests
import streamlit as st

from access_control.utils.encoding_utils import ENCODING_DIMENSION, encode_face_encoding

# Configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1")

STATUS_ICONS = {"IDENTIFIED": "✅", "VISITOR": "🎫", "DENIED": "⛔"}

st.set_page_config(
    page_title="Face Access Control Dashboard",
    page_icon="🛂",
    layout="wide",
    initial_sidebar_state="expanded"
)


def make_api_request(endpoint: str, method: str = "GET", data: Optional[Dict] = None) -> Dict:
    """Make API request to the access control service"""
    url = f"{API_BASE_URL}{endpoint}"
    headers = {
        "Content-Type": "application/json",
        "X-Call-ID": f"dashboard-{int(time.time())}-{uuid.uuid4().hex[:8]}"
    }

    try:
        response = requests.request(method, url, headers=headers, json=data, timeout=30)
    except requests.exceptions.RequestException as e:
        return {"success": False, "error": {"message": f"Network error: {e}"}}

    try:
        body = response.json() if response.content else {}
    except ValueError:
        body = {"message": response.text}

    if response.status_code < 400:
        return {"success": True, "data": body}
    return {"success": False, "error": body}


def demo_encoding(seed: Optional[str] = None) -> str:
    """
    Build a demo face encoding for test scans.

    A seed maps its bytes onto [-1, 1] so the same name always produces
    the same encoding; without a seed the values are random.
    """
    if seed:
        data = seed.encode("utf-8")
        values = [(data[i % len(data)] / 255) * 2 - 1 for i in range(ENCODING_DIMENSION)]
    else:
        values = np.random.uniform(-1.0, 1.0, ENCODING_DIMENSION)
    return encode_face_encoding(np.round(values, 6))


def show_error(error: Dict) -> None:
    st.error(f"❌ {error.get('error', 'Error')}: {error.get('message', 'No details available')}")


def show_overview(health_status: Dict):
    """Display scan statistics and recent events"""
    st.header("📊 Access Overview")

    stats = make_api_request("/scan/stats")
    if stats["success"]:
        data = stats["data"]
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Total Scans", data.get("total", 0))
        col2.metric("Identified", data.get("identified", 0))
        col3.metric("Visitors", data.get("visitor", 0))
        col4.metric("Denied", data.get("denied", 0))
    else:
        show_error(stats["error"])

    st.subheader("Recent Scan Events")
    result = make_api_request("/scan/events")
    if not result["success"]:
        show_error(result["error"])
        return

    events = result["data"].get("events", [])
    if not events:
        st.info("No scan events recorded yet.")
        return

    df = pd.DataFrame([
        {
            "timestamp": pd.to_datetime(event["timestamp"]),
            "status": f"{STATUS_ICONS.get(event['status'], '')} {event['status']}",
            "name": (event.get("user") or {}).get("name", "Unknown" if event.get("userId") else "-"),
            "card_id": (event.get("user") or {}).get("cardId"),
            "confidence": event.get("confidence"),
        }
        for event in events
    ])

    st.dataframe(
        df,
        column_config={
            "timestamp": st.column_config.DatetimeColumn("Timestamp"),
            "status": st.column_config.TextColumn("Status", width="small"),
            "name": st.column_config.TextColumn("Name"),
            "card_id": st.column_config.TextColumn("Card ID", width="small"),
            "confidence": st.column_config.NumberColumn("Confidence", format="%.2f"),
        },
        hide_index=True,
        use_container_width=True
    )

    with st.expander("Service health"):
        st.json(health_status)

    if st.button("🔄 Refresh"):
        st.rerun()


def show_test_scan():
    """Submit demo encodings to the scan endpoint"""
    st.header("🧪 Test Scan")

    seed = st.text_input(
        "Seed (optional)",
        placeholder="john_doe",
        help="Scanning with the same seed used at enrollment reproduces that identity's encoding"
    )

    if st.button("🛂 Scan", type="primary"):
        with st.spinner("Scanning..."):
            result = make_api_request("/scan", "POST", {"faceEncoding": demo_encoding(seed or None)})

        if not result["success"]:
            show_error(result["error"])
            return

        data = result["data"]
        status = data.get("status")
        user = data.get("user") or {}
        message = f"{STATUS_ICONS.get(status, '')} {status}"
        if user:
            message += f" - {user.get('name')} ({user.get('cardId')})"
        if data.get("confidence") is not None:
            message += f", confidence {data['confidence']:.2f} ({data.get('quality')})"

        if status == "DENIED":
            st.warning(message)
        else:
            st.success(message)


def expiry_to_iso(expiry_date: Optional[date]) -> Optional[str]:
    """End of the chosen day in UTC, as the API expects it."""
    if expiry_date is None:
        return None
    return datetime.combine(expiry_date, dt_time.max, tzinfo=timezone.utc).isoformat()


def stored_expiry_date(user: Dict) -> Optional[date]:
    if not user.get("expiresAt"):
        return None
    return datetime.fromisoformat(user["expiresAt"].replace("Z", "+00:00")).date()


def build_update_payload(user: Dict, form: Dict, expiry_date: Optional[date], seed: str = "") -> Dict:
    """
    PUT body holding only the fields the edit form changed.

    Text fields are compared after stripping; an empty email clears it.
    The encoding is only replaced when a new seed is given.
    """
    values = {
        "cardId": form["cardId"].strip(),
        "name": form["name"].strip(),
        "email": form["email"].strip() or None,
        "userType": form["userType"],
    }
    payload = {key: value for key, value in values.items() if value != user.get(key)}

    if expiry_date != stored_expiry_date(user):
        payload["expiresAt"] = expiry_to_iso(expiry_date)
    if seed:
        payload["faceEncoding"] = demo_encoding(seed)
    return payload


def show_edit_form(users: list):
    """Edit one identity; only changed fields are sent"""
    to_edit = st.selectbox(
        "Edit user",
        [""] + [f"{user['cardId']} | {user['id']}" for user in users]
    )
    if not to_edit:
        return

    identity_id = to_edit.split(" | ")[1]
    user = next(u for u in users if u["id"] == identity_id)

    with st.form(f"edit_form_{identity_id}"):
        col1, col2 = st.columns(2)
        with col1:
            card_id = st.text_input("Card ID", value=user["cardId"])
            name = st.text_input("Name", value=user["name"])
            email = st.text_input("Email", value=user.get("email") or "")
        with col2:
            user_type = st.selectbox(
                "User type",
                ["PERMANENT", "TEMPORARY"],
                index=0 if user["userType"] == "PERMANENT" else 1
            )
            expiry_date = st.date_input("Expires on", value=stored_expiry_date(user))
            seed = st.text_input("New encoding seed", help="Leave empty to keep the enrolled encoding")

        if st.form_submit_button("💾 Save changes"):
            form = {"cardId": card_id, "name": name, "email": email, "userType": user_type}
            payload = build_update_payload(user, form, expiry_date, seed)

            if not card_id.strip() or not name.strip():
                st.error("❌ Card ID and name are required")
            elif not payload:
                st.info("Nothing changed")
            else:
                result = make_api_request(f"/users/{identity_id}", "PUT", payload)
                if result["success"]:
                    st.success(f"✅ Updated {name.strip()}")
                    st.rerun()
                else:
                    show_error(result["error"])


def show_user_management():
    """List, enroll, edit and remove identities"""
    st.header("👥 User Management")

    with st.form("enrollment_form"):
        col1, col2 = st.columns(2)
        with col1:
            card_id = st.text_input("Card ID", placeholder="EMP001")
            name = st.text_input("Name", placeholder="John Doe")
            email = st.text_input("Email (optional)", placeholder="john@company.com")
        with col2:
            user_type = st.selectbox("User type", ["PERMANENT", "TEMPORARY"])
            expiry_date = st.date_input("Expires on (temporary users)", value=None)
            seed = st.text_input("Encoding seed", help="Defaults to the name; reuse it on the Test Scan page")

        if st.form_submit_button("➕ Enroll User", type="primary"):
            if not card_id or not name:
                st.error("❌ Card ID and name are required")
            else:
                payload = {
                    "cardId": card_id,
                    "name": name,
                    "email": email or None,
                    "faceEncoding": demo_encoding(seed or name.lower().replace(" ", "_")),
                    "userType": user_type,
                    "expiresAt": expiry_to_iso(expiry_date),
                }
                result = make_api_request("/users", "POST", payload)
                if result["success"]:
                    st.success(f"✅ Enrolled {name} ({card_id})")
                else:
                    show_error(result["error"])

    result = make_api_request("/users")
    if not result["success"]:
        show_error(result["error"])
        return

    users = result["data"].get("users", [])
    if not users:
        st.info("No users enrolled.")
        return

    search_term = st.text_input("🔍 Search users", placeholder="Name or card ID")
    df = pd.DataFrame(users)
    if search_term:
        df = df[df["name"].str.contains(search_term, case=False) |
                df["cardId"].str.contains(search_term, case=False)]

    st.dataframe(
        df[["cardId", "name", "email", "userType", "expiresAt", "createdAt"]],
        hide_index=True,
        use_container_width=True
    )

    show_edit_form(users)

    to_delete = st.selectbox(
        "Delete user",
        [""] + [f"{user['cardId']} | {user['id']}" for user in users]
    )
    if to_delete and st.button("🗑️ Delete"):
        identity_id = to_delete.split(" | ")[1]
        deleted = make_api_request(f"/users/{identity_id}", "DELETE")
        if deleted["success"]:
            st.success("User deleted")
            st.rerun()
        else:
            show_error(deleted["error"])


def main():
    st.title("🛂 Face Access Control")

    st.sidebar.title("Navigation")
    page = st.sidebar.selectbox("Choose a page", ["Overview", "Test Scan", "User Management"])

    health = make_api_request("/health")
    health_status = health["data"] if health["success"] else {"status": "unhealthy", **health["error"]}

    if health_status.get("status") == "healthy":
        st.sidebar.success("✅ Service Online")
    else:
        st.sidebar.error("❌ Service Offline")
        st.sidebar.text(health_status.get("message", "Unknown error"))

    if page == "Overview":
        show_overview(health_status)
    elif page == "Test Scan":
        show_test_scan()
    elif page == "User Management":
        show_user_management()


if __name__ == "__main__":
    main()
