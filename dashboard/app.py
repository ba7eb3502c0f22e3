"""Streamlit admin viewer for the storage availability engine."""

from __future__ import annotations

import datetime
import os
from typing import Any, Dict, Optional

import pandas as pd
import requests
import streamlit as st

# ==========================================
# Configuration & Constants
# ==========================================
# Point this to your local FastAPI server
API_BASE_URL = os.getenv("AVAILABILITY_API_URL", "http://127.0.0.1:8000")
PLAN_TYPES = ["DIY", "FULL_SERVICE"]
SLOT_STARTS = [f"{hour:02d}:00" for hour in range(9, 18)]

st.set_page_config(
    page_title="Availability Admin",
    page_icon="📦",
    layout="wide",
)


# ==========================================
# API Helper Functions
# ==========================================
def _get(path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        response = requests.get(f"{API_BASE_URL}{path}", params=params, timeout=10)
    except requests.exceptions.RequestException as e:
        st.error(f"Backend connection failed: {e}")
        return None
    if response.status_code >= 400:
        detail = response.json().get("detail", {})
        if isinstance(detail, dict):
            field = detail.get("field")
            suffix = f" (field: {field})" if field else ""
            st.error(f"{detail.get('error', 'Error')}: {detail.get('message', '')}{suffix}")
        else:
            st.error(str(detail))
        return None
    return response.json()


def fetch_monthly(plan_type: str, year: int, month: int, units: int) -> Optional[Dict[str, Any]]:
    return _get(
        "/availability",
        {
            "type": "month",
            "planType": plan_type,
            "year": year,
            "month": month,
            "numberOfUnits": units,
        },
    )


def fetch_daily(plan_type: str, target_date: str, units: int) -> Optional[Dict[str, Any]]:
    return _get(
        "/availability",
        {
            "type": "date",
            "planType": plan_type,
            "date": target_date,
            "numberOfUnits": units,
        },
    )


def fetch_slot_conflicts(target_date: str, start_time: str, plan_type: str) -> Optional[Dict[str, Any]]:
    return _get(
        "/availability/slot_conflicts",
        {"date": target_date, "startTime": start_time, "planType": plan_type},
    )


def render_metadata(metadata: Dict[str, Any]) -> None:
    col1, col2, col3 = st.columns(3)
    col1.metric("Query time (ms)", round(metadata.get("query_time_ms", 0.0), 2))
    col2.metric("Cache hit", "yes" if metadata.get("cache_hit") else "no")
    checked = metadata.get("resources_checked", {})
    col3.metric("Drivers / movers", f"{checked.get('drivers', 0)} / {checked.get('movers', 0)}")
    st.caption(f"Conflicts found: {metadata.get('conflicts_found', {})}")


# ==========================================
# UI Page Functions
# ==========================================
def render_monthly_page() -> None:
    st.header("📅 Monthly Availability")

    today = datetime.date.today()
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        plan_type = st.selectbox("Plan type", PLAN_TYPES, key="monthly_plan")
    with col2:
        year = st.number_input("Year", min_value=2000, max_value=2100, value=today.year)
    with col3:
        month = st.number_input("Month", min_value=1, max_value=12, value=today.month)
    with col4:
        units = st.number_input("Units", min_value=1, max_value=20, value=1, key="monthly_units")

    if st.button("Load month", type="primary"):
        result = fetch_monthly(plan_type, int(year), int(month), int(units))
        if result:
            days = result.get("days", [])
            if not days:
                st.info("No remaining dates in this month.")
                return
            df = pd.json_normalize(days)
            st.dataframe(df, use_container_width=True)
            render_metadata(result.get("metadata", {}))


def render_daily_page() -> None:
    st.header("🕘 Daily Time Slots")

    col1, col2, col3 = st.columns(3)
    with col1:
        plan_type = st.selectbox("Plan type", PLAN_TYPES, key="daily_plan")
    with col2:
        target_date = st.date_input("Date", datetime.date.today() + datetime.timedelta(days=1))
    with col3:
        units = st.number_input("Units", min_value=1, max_value=20, value=1, key="daily_units")

    if st.button("Load slots", type="primary"):
        result = fetch_daily(plan_type, str(target_date), int(units))
        if result:
            df = pd.json_normalize(result.get("data", []))
            st.dataframe(df, use_container_width=True)
            render_metadata(result.get("metadata", {}))


def render_conflicts_page() -> None:
    st.header("🔍 Slot Conflicts")
    st.markdown("Explain why a slot is or is not bookable for each resource.")

    col1, col2, col3 = st.columns(3)
    with col1:
        plan_type = st.selectbox("Plan type", PLAN_TYPES, index=1, key="conflict_plan")
    with col2:
        target_date = st.date_input("Date", datetime.date.today() + datetime.timedelta(days=1), key="conflict_date")
    with col3:
        start_time = st.selectbox("Slot start", SLOT_STARTS)

    if st.button("Explain slot", type="primary"):
        result = fetch_slot_conflicts(str(target_date), start_time, plan_type)
        if result:
            st.write(f"### {result['slot']['display']} on {result['date']}")
            for label in ("drivers", "movers"):
                rows = result.get(label, [])
                st.write(f"#### {label.title()}")
                if not rows:
                    st.info(f"No {label} in this pool.")
                    continue
                df = pd.DataFrame(
                    [
                        {
                            "resource_id": row["resource_id"],
                            "is_free": row["is_free"],
                            "in_weekly_schedule": row["in_weekly_schedule"],
                            "conflicts": ", ".join(item["type"] for item in row["conflicts"]),
                        }
                        for row in rows
                    ]
                )
                st.dataframe(df, use_container_width=True)


# ==========================================
# Main App Router
# ==========================================
def main() -> None:
    st.sidebar.title("Availability Engine")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "View",
        ["Monthly", "Daily", "Slot Conflicts"]
    )

    st.sidebar.markdown("---")
    st.sidebar.caption(f"API: {API_BASE_URL}")

    if page == "Monthly":
        render_monthly_page()
    elif page == "Daily":
        render_daily_page()
    elif page == "Slot Conflicts":
        render_conflicts_page()


if __name__ == "__main__":
    main()
