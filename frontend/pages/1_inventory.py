# frontend/pages/1_inventory.py
import requests
import pandas as pd
import streamlit as st

from api_client import get_api_base_and_token, get_json, send_json, toast, sidebar

st.set_page_config(page_title="Stok", layout="wide")

API_BASE, TOKEN, HDRS = get_api_base_and_token()
st.title("📦 Stok Yönetimi")
sidebar(API_BASE, TOKEN)

# --- Mağazalar (form seçimleri için) ---
try:
    stores = get_json(f"{API_BASE}/stores", HDRS, {"active_only": True}).get("data", [])
except requests.RequestException as e:
    stores = []
    st.error(f"Mağazalar alınamadı: {e}")
store_names = {s["Name"]: s["StoreID"] for s in stores}

# --- Stok listesi ---
st.subheader("Stok Listesi")
c1, c2, c3, c4 = st.columns([2, 2, 1, 1])
store_pick = c1.selectbox("Mağaza", ["(tümü)"] + list(store_names), key="inv_store")
name_q = c2.text_input("Ürün / SKU", key="inv_name")
low_only = c3.checkbox("Düşük stok", key="inv_low")
out_only = c4.checkbox("Stok yok", key="inv_out")

params = {"limit": 200, "low_stock": low_only, "out_of_stock": out_only}
if store_pick != "(tümü)":
    params["store_id"] = store_names[store_pick]
if name_q:
    params["product_name"] = name_q
try:
    res = get_json(f"{API_BASE}/inventory", HDRS, params)
    df = pd.DataFrame(res.get("data", []))
    if df.empty:
        st.info("Kayıt yok.")
    else:
        st.caption(f"Toplam: {res.get('meta', {}).get('total', len(df))}")
        st.dataframe(df, use_container_width=True, height=320)
except requests.RequestException as e:
    st.error(f"Liste alınamadı: {e}")

st.divider()
c_adj, c_tr = st.columns(2)

# --- Stok düzeltme ---
with c_adj:
    st.subheader("Stok Düzelt")
    with st.form("form_adjust", clear_on_submit=True):
        vid = st.number_input("VariantID", min_value=1, step=1)
        sname = st.selectbox("Mağaza", list(store_names) or ["-"])
        action = st.radio("İşlem", ["add", "reduce", "set"], horizontal=True)
        qty = st.number_input("Miktar", min_value=0, step=1)
        notes = st.text_input("Not")
        submitted = st.form_submit_button("Uygula")
    if submitted and sname in store_names:
        try:
            res = send_json("POST", f"{API_BASE}/inventory/adjust", HDRS, {
                "VariantID": int(vid), "StoreID": store_names[sname], "Action": action,
                "Quantity": int(qty), "Notes": notes or None,
            })
            tx = res["data"]["Transaction"]
            toast(f"Stok: {tx['BeforeQuantity']} → {tx['AfterQuantity']}")
        except requests.RequestException as e:
            st.error(f"Düzeltme hatası: {e}")

# --- Mağazalar arası transfer ---
with c_tr:
    st.subheader("Transfer")
    with st.form("form_transfer", clear_on_submit=True):
        t_vid = st.number_input("VariantID", min_value=1, step=1, key="t_vid")
        src = st.selectbox("Kaynak", list(store_names) or ["-"], key="t_src")
        dst = st.selectbox("Hedef", list(store_names) or ["-"], key="t_dst")
        t_qty = st.number_input("Miktar", min_value=1, step=1, key="t_qty")
        t_status = st.selectbox("Durum", ["completed", "in_transit", "pending"])
        t_sub = st.form_submit_button("Transfer Oluştur")
    if t_sub and src in store_names and dst in store_names:
        try:
            res = send_json("POST", f"{API_BASE}/transfers", HDRS, {
                "FromStoreID": store_names[src], "ToStoreID": store_names[dst],
                "VariantID": int(t_vid), "Quantity": int(t_qty), "Status": t_status,
            })
            toast(f"Transfer #{res['data']['TransferID']} ({res['data']['Status']})")
        except requests.RequestException as e:
            st.error(f"Transfer hatası: {e}")

# --- Kayıt detayı ve sağlık ---
with st.expander("🔎 Stok kaydı detayı"):
    inv_id = st.number_input("InventoryID", min_value=1, step=1, key="detail_inv")
    if st.button("Getir", key="btn_detail"):
        try:
            detail = get_json(f"{API_BASE}/inventory/{int(inv_id)}", HDRS)["data"]
            health = get_json(f"{API_BASE}/inventory/{int(inv_id)}/health", HDRS)["data"]
            reorder = get_json(f"{API_BASE}/inventory/{int(inv_id)}/reorder", HDRS)["data"]
            m = st.columns(3)
            m[0].metric("Mevcut", detail["Quantity"])
            m[1].metric("Sağlık", f"{health['Score']} ({health['Status']})")
            m[2].metric("Önerilen sipariş", reorder["SuggestedQuantity"])
            st.dataframe(pd.DataFrame(detail["RecentTransactions"]), use_container_width=True)
        except requests.RequestException as e:
            st.error(f"Detay alınamadı: {e}")
