from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from harmony_relay.api.deps import agent_store
from harmony_relay.core.errors import BadRequest, RelayError
from harmony_relay.models.agents import CreateAgentBody
from harmony_relay.services.agent_store import AgentStore

logger = logging.getLogger("harmony.api.agents")
router = APIRouter()


@router.get("", name="agents_list")
def list_agents(store: AgentStore = Depends(agent_store)):
    agents = store.list_agents()
    logger.info("GET /api/agents count=%d", len(agents))
    return {"agents": [a.model_dump() for a in agents]}


@router.post("", name="agents_create")
def create_agent(body: CreateAgentBody, store: AgentStore = Depends(agent_store)):
    label = (body.label or "").strip()
    prompt = (body.prompt or "").strip()
    if not label:
        raise BadRequest("Agent name is required.")
    if not prompt:
        raise BadRequest("Agent prompt is required.")
    created = store.create(label, prompt)
    logger.info("POST /api/agents created=%s", created)
    return {"agents": [a.model_dump() for a in store.list_agents()], "createdId": created}


@router.get("/{agent_id}", name="agents_get")
def get_agent(agent_id: str, store: AgentStore = Depends(agent_store)):
    prompt = store.get_agent_prompt(agent_id)
    if prompt is None:
        logger.warning("GET /api/agents/%s not found", agent_id)
        raise RelayError(f"Agent {agent_id} not found.", code="NOT_FOUND", http_status=404)
    return {"id": agent_id, "prompt": prompt}
