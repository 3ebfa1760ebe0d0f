# backend/inventory_api/core/api.py
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Tüm JSON cevaplarda UTF-8 charset
class UTF8JSONResponse(JSONResponse):
    media_type = "application/json; charset=utf-8"

def list_meta(items: Optional[Sequence[Any]] = None, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    meta: Dict[str, Any] = {}
    if items is not None:
        try:
            meta["count"] = len(items)
        except Exception:
            pass
    if extra:
        meta.update(extra)
    return meta

def page_meta(items: Sequence[Any], *, total: int, skip: int, limit: int) -> Dict[str, Any]:
    return list_meta(items, {"total": total, "skip": skip, "limit": limit})

def ok(data: Any = True, meta: Optional[Dict[str, Any]] = None, status_code: int = 200):
    payload: Dict[str, Any] = {"ok": True, "data": data}
    if meta:
        payload["meta"] = meta
    return UTF8JSONResponse(content=payload, status_code=status_code)

def fail(error: str, status_code: int = 400, meta: Optional[Dict[str, Any]] = None):
    payload: Dict[str, Any] = {"ok": False, "error": error}
    if meta:
        payload["meta"] = meta
    return UTF8JSONResponse(content=payload, status_code=status_code)

# ORM -> okuma şeması -> JSON uyumlu dict
def dump(schema: Type[BaseModel], obj: Any) -> Dict[str, Any]:
    return schema.model_validate(obj).model_dump(mode="json")

def dump_list(schema: Type[BaseModel], rows: Iterable[Any]) -> List[Dict[str, Any]]:
    return [dump(schema, r) for r in rows]
