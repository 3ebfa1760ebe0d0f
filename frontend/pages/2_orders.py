# frontend/pages/2_orders.py
import requests
import pandas as pd
import streamlit as st

from api_client import get_api_base_and_token, get_json, send_json, toast, sidebar

st.set_page_config(page_title="Siparişler", layout="wide")

API_BASE, TOKEN, HDRS = get_api_base_and_token()
st.title("🧾 Siparişler")
sidebar(API_BASE, TOKEN)

SHIPPING = ["", "pending", "processing", "shipped", "delivered", "cancelled"]
PAYMENT = ["", "pending", "unpaid", "partial", "paid", "refunded"]

c1, c2, c3 = st.columns([2, 1, 1])
search = c1.text_input("Sipariş no / müşteri")
ship_s = c2.selectbox("Kargo durumu", SHIPPING)
pay_s = c3.selectbox("Ödeme durumu", PAYMENT)

params = {"limit": 100}
if search:
    params["search"] = search
if ship_s:
    params["shipping_status"] = ship_s
if pay_s:
    params["payment_status"] = pay_s

try:
    rows = get_json(f"{API_BASE}/orders", HDRS, params).get("data", [])
    df = pd.DataFrame(rows)
    if df.empty:
        st.info("Sipariş yok.")
    else:
        cols = ["OrderID", "OrderNumber", "CustomerName", "ShippingStatus", "PaymentStatus",
                "GrandTotal", "PaidAmount", "CreatedAt"]
        st.dataframe(df[[c for c in cols if c in df.columns]], use_container_width=True, height=320)
except requests.RequestException as e:
    st.error(f"Liste alınamadı: {e}")

st.divider()
st.subheader("Sipariş İşlemleri")
oid = st.number_input("OrderID", min_value=1, step=1)

if st.button("Detay", key="btn_order_detail"):
    try:
        d = get_json(f"{API_BASE}/orders/{int(oid)}", HDRS)["data"]
        st.write(f"**{d['OrderNumber']}** · {d.get('CustomerName') or ''} · {d['GrandTotal']:,.2f}")
        st.dataframe(pd.DataFrame(d["Items"]), use_container_width=True)
        st.dataframe(pd.DataFrame(d["Histories"]), use_container_width=True)
    except requests.RequestException as e:
        st.error(f"Detay alınamadı: {e}")

c_pay, c_ship, c_cancel = st.columns(3)

with c_pay:
    with st.form("form_pay", clear_on_submit=True):
        amount = st.number_input("Tutar", min_value=0.01, step=100.0)
        method = st.text_input("Yöntem", value="havale")
        if st.form_submit_button("Ödeme Ekle"):
            try:
                res = send_json("POST", f"{API_BASE}/orders/{int(oid)}/add-payment", HDRS,
                                {"Amount": amount, "PaymentMethod": method})
                toast(f"Ödeme durumu: {res['data']['PaymentStatus']}")
            except requests.RequestException as e:
                st.error(f"Ödeme hatası: {e}")

with c_ship:
    with st.form("form_ship", clear_on_submit=True):
        tracking = st.text_input("Takip no")
        carrier = st.text_input("Kargo firması")
        if st.form_submit_button("Kargola"):
            try:
                send_json("POST", f"{API_BASE}/orders/{int(oid)}/create-shipment", HDRS,
                          {"TrackingNumber": tracking, "Carrier": carrier or None})
                toast("Kargo kaydı oluşturuldu.")
            except requests.RequestException as e:
                st.error(f"Kargo hatası: {e}")

with c_cancel:
    with st.form("form_cancel", clear_on_submit=True):
        reason = st.text_input("İptal nedeni")
        if st.form_submit_button("İptal Et"):
            try:
                send_json("POST", f"{API_BASE}/orders/{int(oid)}/cancel", HDRS, {"Reason": reason or None})
                toast("Sipariş iptal edildi; stok iade edildi.", icon="⚠️")
            except requests.RequestException as e:
                st.error(f"İptal hatası: {e}")
