import os

import pandas as pd
import requests
import streamlit as st
from streamlit_autorefresh import st_autorefresh

API_URL = os.getenv("CARDIOCARE_API_URL", "http://localhost:8000")
TIMEOUT = 3.0

st.set_page_config(page_title="Adaptive CardioCare", layout="wide")


def api_get(path: str, **params):
    r = requests.get(f"{API_URL}{path}", params=params, timeout=TIMEOUT)
    r.raise_for_status()
    return r.json()


def api_post(path: str, payload: dict | None = None):
    r = requests.post(f"{API_URL}{path}", json=payload, timeout=TIMEOUT)
    r.raise_for_status()
    return r.json()


# ---- Sidebar controls ----
st.sidebar.title("Controls")
auto = st.sidebar.toggle("Live monitoring", value=True)
interval_ms = st.sidebar.slider("Refresh interval (ms)", 1000, 10000, 6000, step=500)
search = st.sidebar.text_input("Search patients", "")

if auto:
    st_autorefresh(interval=interval_ms, key="cc_refresh")

try:
    patients = api_get("/patients", q=search)
    telemetry = api_get("/telemetry")
except requests.RequestException as e:
    st.error(f"Telemetry service unreachable at {API_URL}: {e}")
    st.stop()

with st.sidebar.expander("Admit patient"):
    with st.form("admit"):
        name = st.text_input("Name")
        age = st.number_input("Age", min_value=0, max_value=120, value=50)
        gender = st.selectbox("Gender", ["Female", "Male", "Other"])
        ward = st.text_input("Ward", "Cardiology A")
        email = st.text_input("Family member email", "")
        if st.form_submit_button("Admit") and name:
            api_post("/patients", {
                "name": name, "age": int(age), "gender": gender,
                "ward": ward, "family_member_email": email or None,
            })
            st.rerun()

st.title("Adaptive CardioCare")

if not patients:
    st.info("No patients match.")
    st.stop()

# ---- Patient overview ----
st.subheader("Patient Overview")
badge = {"Stable": "✅", "Elevated": "⚠️", "Recovering": "🟡", "Critical": "🚨"}
focused_id = telemetry.get("patient_id")
cols = st.columns(min(len(patients), 4))
for i, p in enumerate(patients):
    with cols[i % len(cols)]:
        marker = " (focused)" if p["id"] == focused_id else ""
        st.markdown(f"**{p['name']}** · {p['id']}{marker}")
        st.metric("Heart rate (bpm)", p["bpm"])
        st.caption(f"{badge[p['condition']]} {p['condition']} · risk {p['risk']:.2f}")
        if p["id"] != focused_id and st.button("Focus", key=f"focus-{p['id']}"):
            api_post(f"/focus/{p['id']}")
            st.rerun()

# ---- Focused patient chart ----
left, right = st.columns([1.4, 1])
with left:
    st.subheader(f"Live vitals: {focused_id}")
    entries = telemetry.get("entries", [])
    if entries:
        df = pd.DataFrame(entries)
        df["timestamp"] = pd.to_datetime(df["timestamp"])
        st.line_chart(df.set_index("timestamp")[["bpm", "stress", "spo2"]])
    else:
        st.info("Waiting for the first readings.")

with right:
    st.subheader("Stress by patient")
    df_p = pd.DataFrame(patients)
    st.bar_chart(df_p.set_index("id")["stress"])

    st.subheader("Ask about this patient")
    question = st.text_input("Question", "Why is this patient's risk changing?")
    if st.button("Explain") and focused_id:
        ans = api_post("/explain", {"question": question, "patient_id": focused_id})
        st.write(ans["explanation"])
        if ans.get("recommendation"):
            st.write("Recommendation:", ans["recommendation"])
        if ans.get("confidence") is not None:
            st.caption(f"Confidence {int(ans['confidence'] * 100)}%")

# ---- Risk matrix ----
st.subheader("Risk Matrix")
df_risk = pd.DataFrame(patients)[["id", "name", "ward", "condition", "bpm", "stress", "spo2", "temp", "risk", "timestamp"]]
st.dataframe(df_risk.sort_values("risk", ascending=False), use_container_width=True, hide_index=True)
