# frontend/api_client.py  (sayfaların ortak istek yardımcıları)
import os
import requests
import streamlit as st
from dotenv import load_dotenv

load_dotenv()


def get_api_base_and_token():
    api_base = st.session_state.get("api_base") or os.getenv("API_BASE", "http://127.0.0.1:8000")
    token = st.session_state.get("jwt", "") or os.getenv("API_TOKEN", "")
    hdrs = {"Authorization": f"Bearer {token}"} if token else {}
    return api_base.rstrip("/"), token, hdrs


def _unwrap(r: requests.Response):
    # Hata zarfındaki mesajı göster
    if r.status_code >= 400:
        try:
            msg = r.json().get("error") or r.text[:160]
        except ValueError:
            msg = r.text[:160]
        raise requests.HTTPError(f"{r.status_code}: {msg}", response=r)
    return r.json()


def get_json(url: str, hdrs: dict, params: dict | None = None):
    return _unwrap(requests.get(url, headers=hdrs, params=params, timeout=20))


def send_json(method: str, url: str, hdrs: dict, payload: dict | None = None):
    return _unwrap(requests.request(method, url, headers=hdrs, json=payload or {}, timeout=20))


def toast(msg: str, icon: str = "✅"):
    try:
        st.toast(msg, icon=icon)
    except Exception:
        st.success(msg)


def sidebar(api_base: str, token: str):
    with st.sidebar:
        st.info(f"API: {api_base}")
        st.write("JWT:", "✅ Var" if token else "❌ Yok")
