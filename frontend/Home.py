# frontend/Home.py
import os, datetime as dt, time
import requests, pandas as pd
import streamlit as st
import plotly.graph_objects as go
from dotenv import load_dotenv

load_dotenv()
st.set_page_config(page_title="Stok Panosu", layout="wide")

# Varsayılanlar
DEFAULT_API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
DEFAULT_TOKEN    = os.getenv("API_TOKEN", "")

def _normalize_token(raw: str) -> str:
    s = str(raw or "").strip().strip('"').strip("'")
    if not s:
        return ""
    # "Bearer ..." gelmişse sadece JWT'yi al
    if s.lower().startswith("bearer "):
        s = s.split(" ", 1)[1].strip()
    return s

if "jwt" not in st.session_state:
    st.session_state["jwt"] = _normalize_token(DEFAULT_TOKEN)

st.title("Stok Panosu")

# --------- Sidebar: Ayarlar / Giriş / Sağlık ---------
with st.sidebar:
    st.header("Ayarlar")
    api_base = st.text_input("API Tabanı", value=DEFAULT_API_BASE, key="api_base")

    st.divider()
    st.subheader("Giriş (JWT)")
    colu, colp = st.columns(2)
    username = colu.text_input("Kullanıcı", value="", placeholder="admin", key="user")
    password = colp.text_input("Parola", value="", type="password", key="pass")
    c1, c2 = st.columns([1, 1])
    do_login  = c1.button("Giriş Yap", key="btn_login")
    do_logout = c2.button("Çıkış", key="btn_logout")

    def _login(api_base: str, u: str, p: str) -> str:
        url = f"{api_base.rstrip('/')}/auth/login"
        r = requests.post(url, data={"username": u, "password": p}, timeout=15)
        r.raise_for_status()
        return r.json().get("access_token", "")

    if do_login:
        try:
            tok = _normalize_token(_login(api_base, username, password))
            if tok:
                st.session_state["jwt"] = tok
                st.success("Giriş başarılı.")
            else:
                st.error("Giriş başarısız: access_token boş.")
        except requests.RequestException as e:
            st.error(f"Giriş hatası: {e}")

    if do_logout:
        st.session_state["jwt"] = ""
        st.info("Çıkış yapıldı.")

    st.divider()
    st.subheader("API Sağlık")
    def _health(api_base: str):
        try:
            h = requests.get(f"{api_base.rstrip('/')}/health", timeout=5)
            h.raise_for_status()
            return True, h.json()
        except requests.RequestException as e:
            return False, str(e)
    healthy, payload = _health(api_base)
    if healthy:
        st.success("API: Tamam")
    else:
        st.error(f"API erişilemedi: {payload}")

API_BASE = (api_base or DEFAULT_API_BASE).strip().rstrip("/")
TOKEN    = _normalize_token(st.session_state.get("jwt", ""))
HDRS     = {"Authorization": f"Bearer {TOKEN}"} if TOKEN else {}

# ---------- Hata sınıfı & istek yardımcıları ----------
class ApiError(Exception):
    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        self.status = status; self.url = url; super().__init__(message)

def _friendly_http_message(status: int, url: str, body: dict | None) -> str:
    if status == 401: return "Yetkisiz (401): Giriş yapın."
    if status == 403: return "Erişim engellendi (403)."
    if status == 404: return f"Bulunamadı (404): {url}"
    if body and body.get("error"): return f"{status}: {body['error']}"
    return f"HTTP hata {status}"

def get_data(url: str, hdrs: dict, params: dict | None = None):
    """ok-zarfından data'yı döndürür."""
    try:
        r = requests.get(url, headers=hdrs, params=params, timeout=15)
        r.raise_for_status()
        return r.json().get("data")
    except requests.Timeout:
        raise ApiError("Zaman aşımı.")
    except requests.ConnectionError:
        raise ApiError("Bağlantı kurulamadı: API kapalı ya da URL yanlış.")
    except requests.HTTPError as e:
        resp = e.response
        try:
            body = resp.json()
        except ValueError:
            body = None
        raise ApiError(_friendly_http_message(resp.status_code, url, body), resp.status_code, url)

@st.cache_data(ttl=30)
def load_dashboard(api_base: str, hdrs: dict):
    stats = get_data(f"{api_base}/dashboard/stats", hdrs) or {}
    low = get_data(f"{api_base}/inventory/alerts/low-stock", hdrs, {"limit": 50}) or []
    backorders = get_data(f"{api_base}/backorders/summary", hdrs) or []
    return stats, low, backorders

def _empty_fig(height=320, text="Veri yok"):
    fig = go.Figure()
    fig.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=height)
    fig.add_annotation(text=text, x=0.5, y=0.5, xref="paper", yref="paper", showarrow=False)
    return fig

if st.button("Yenile", key="btn_refresh"):
    st.cache_data.clear()
status = st.empty()

# ------------------ ANA AKIŞ ------------------
try:
    status.info("Yükleniyor…")
    stats, low, backorders = load_dashboard(API_BASE, HDRS)

    # ===== 1) Özet kartları =====
    m = st.columns(6)
    m[0].metric("Bu ay sipariş", stats.get("MonthOrderCount", 0))
    m[1].metric("Bu ay ciro", f"{stats.get('MonthRevenue', 0):,.0f}")
    m[2].metric("Bekleyen sipariş", stats.get("PendingOrders", 0))
    m[3].metric("Düşük stok", stats.get("LowStockCount", 0))
    m[4].metric("Stok yok", stats.get("OutOfStockCount", 0))
    m[5].metric("Bekleyen ön sipariş", stats.get("PendingBackorders", 0))

    left, right = st.columns(2)

    # ===== 2) Düşük stok listesi =====
    with left:
        st.subheader("Düşük Stok")
        df_low = pd.DataFrame(low)
        if df_low.empty:
            st.info("Eşik altında stok yok.")
        else:
            df_low = df_low[["Sku", "ProductName", "StoreName", "Quantity", "LowStockThreshold"]].rename(
                columns={"ProductName": "Ürün", "StoreName": "Mağaza", "Quantity": "Mevcut", "LowStockThreshold": "Eşik"}
            )
            fig = go.Figure(data=[
                go.Bar(x=df_low["Sku"], y=df_low["Mevcut"], name="Mevcut"),
                go.Scatter(x=df_low["Sku"], y=df_low["Eşik"], name="Eşik", mode="markers"),
            ])
            fig.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=320)
            st.plotly_chart(fig, use_container_width=True, key="chart_low")
            st.dataframe(df_low, use_container_width=True, height=260)

    # ===== 3) Ön sipariş özeti (satın almaya hazır) =====
    with right:
        st.subheader("Ön Sipariş Özeti")
        df_b = pd.DataFrame(backorders)
        if df_b.empty:
            st.plotly_chart(_empty_fig(320), use_container_width=True, key="chart_bo")
        else:
            fig2 = go.Figure(data=[go.Bar(x=df_b["Sku"], y=df_b["TotalQuantity"], name="Adet",
                                          text=df_b["TotalQuantity"], textposition="outside")])
            fig2.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=320)
            st.plotly_chart(fig2, use_container_width=True, key="chart_bo")
            st.dataframe(df_b.drop(columns=["OrderItemIDs"], errors="ignore"), use_container_width=True, height=260)

    # ===== 4) Stok zaman serisi =====
    st.subheader("Stok Zaman Serisi")
    c1, c2, c3 = st.columns(3)
    vid = c1.number_input("VariantID", min_value=1, step=1, key="ts_vid")
    start = c2.date_input("Başlangıç", dt.date.today() - dt.timedelta(days=30), key="ts_start")
    end = c3.date_input("Bitiş", dt.date.today(), key="ts_end")
    if st.button("Seriyi Getir", key="btn_ts"):
        rows = get_data(f"{API_BASE}/reports/inventory-time-series", HDRS, {
            "product_variant_id": int(vid), "start_date": start.isoformat(), "end_date": end.isoformat(),
        }) or []
        df_ts = pd.DataFrame(rows)
        if df_ts.empty:
            st.plotly_chart(_empty_fig(300), use_container_width=True, key="chart_ts")
        else:
            fig3 = go.Figure(data=[go.Scatter(x=df_ts["Date"], y=df_ts["Quantity"], mode="lines+markers")])
            fig3.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=300)
            st.plotly_chart(fig3, use_container_width=True, key="chart_ts")

    status.success("Hazır · " + time.strftime("%H:%M:%S"))
except ApiError as ex:
    status.error(f"Hata: {ex}")
    st.info("İpucu: Sol menüden API Tabanı ve giriş bilgilerini kontrol et.")
