# frontend/pages/3_purchases.py
import requests
import pandas as pd
import streamlit as st

from api_client import get_api_base_and_token, get_json, send_json, toast, sidebar

st.set_page_config(page_title="Satın Almalar", layout="wide")

API_BASE, TOKEN, HDRS = get_api_base_and_token()
st.title("🚚 Satın Almalar")
sidebar(API_BASE, TOKEN)

STATUSES = ["", "pending", "confirmed", "in_transit", "partially_received", "received", "completed", "cancelled"]

c1, c2 = st.columns([2, 1])
number = c1.text_input("Satın alma no")
status_pick = c2.selectbox("Durum", STATUSES)
params = {"limit": 100}
if number:
    params["order_number"] = number
if status_pick:
    params["status"] = status_pick

try:
    rows = get_json(f"{API_BASE}/purchases", HDRS, params).get("data", [])
    df = pd.DataFrame(rows)
    if df.empty:
        st.info("Satın alma yok.")
    else:
        st.dataframe(df.drop(columns=["Items"], errors="ignore"), use_container_width=True, height=300)
except requests.RequestException as e:
    st.error(f"Liste alınamadı: {e}")

st.divider()

# --- Bekleyen ön siparişlerden satın alma ---
st.subheader("📒 Ön Siparişler")
try:
    bo = get_json(f"{API_BASE}/backorders", HDRS).get("data", [])
    df_bo = pd.DataFrame(bo)
    if df_bo.empty:
        st.info("Bekleyen ön sipariş yok.")
    else:
        st.dataframe(df_bo, use_container_width=True, height=240)
        picked = st.multiselect("Satın almaya dönüştürülecek kalemler", df_bo["OrderItemID"].tolist())
        if st.button("Dönüştür", disabled=not picked):
            try:
                res = send_json("POST", f"{API_BASE}/backorders/convert", HDRS, {"ItemIDs": picked})
                toast(", ".join(p["OrderNumber"] for p in res["data"]) + " oluşturuldu")
            except requests.RequestException as e:
                st.error(f"Dönüştürme hatası: {e}")
except requests.RequestException as e:
    st.error(f"Ön siparişler alınamadı: {e}")

st.divider()

# --- Durum işlemleri ---
st.subheader("Durum Güncelle")
c = st.columns([1, 1, 1])
pid = c[0].number_input("PurchaseID", min_value=1, step=1)
new_status = c[1].selectbox("Yeni durum", ["confirmed", "in_transit", "received", "completed"])
if c[2].button("Uygula"):
    try:
        res = send_json("PATCH", f"{API_BASE}/purchases/{int(pid)}/status", HDRS, {"Status": new_status})
        toast(f"{res['data']['OrderNumber']} → {res['data']['Status']}")
    except requests.RequestException as e:
        st.error(f"Durum hatası: {e}")

if st.button("İptal Et", key="btn_po_cancel"):
    try:
        send_json("PATCH", f"{API_BASE}/purchases/{int(pid)}/cancel", HDRS)
        toast("Satın alma iptal edildi.", icon="⚠️")
    except requests.RequestException as e:
        st.error(f"İptal hatası: {e}")
