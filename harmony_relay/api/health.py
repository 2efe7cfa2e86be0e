from __future__ import annotations

import logging
from typing import List, Dict, Any
from fastapi import APIRouter, Depends, Query, Request

from harmony_relay.api.deps import conversation_store
from harmony_relay.services.conversation_store import ConversationStore

logger = logging.getLogger("harmony.api.health")
router = APIRouter()


@router.get("/ping")
def ping():
    logger.info("GET /health/ping")
    return {"ok": True}


@router.get("/store")
def store_health(store: ConversationStore = Depends(conversation_store)):
    s = store.stats()
    logger.info("GET /health/store sessions=%d messages=%d", s["sessions"], s["messages"])
    return {"ok": True, "sessions": s["sessions"], "messages": s["messages"]}


@router.get("/store/messages")
def store_messages(sid: str = Query(..., min_length=1), store: ConversationStore = Depends(conversation_store)):
    """Inspect exactly what is held for a session."""
    msgs = store.read(sid)
    logger.info("GET /health/store/messages sid=%s count=%d", sid, len(msgs))
    return [m.model_dump() for m in msgs]


@router.get("/routes")
def list_routes(request: Request):
    """Introspect all registered routes to verify there are no collisions."""
    app = request.app
    out: List[Dict[str, Any]] = []
    for r in app.routes:
        path = getattr(r, "path", None)
        methods = getattr(r, "methods", None)
        name = getattr(r, "name", None)
        if path and methods:
            out.append({"path": path, "methods": sorted(list(methods)), "name": name})
    out.sort(key=lambda x: (x["path"], ",".join(x["methods"])))
    logger.info("GET /health/routes count=%d", len(out))
    return {"ok": True, "routes": out}
