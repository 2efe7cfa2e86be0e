# harmony_relay/api/deps.py
from fastapi import Request

from harmony_relay.services.agent_store import AgentStore
from harmony_relay.services.conversation_store import ConversationStore
from harmony_relay.services.ollama_client import OllamaClient
from harmony_relay.services.relay import ChatRelay


def conversation_store(request: Request) -> ConversationStore:
    return request.app.state.conversation_store


def ollama_client(request: Request) -> OllamaClient:
    return request.app.state.ollama_client


def chat_relay(request: Request) -> ChatRelay:
    return request.app.state.chat_relay


def agent_store(request: Request) -> AgentStore:
    return request.app.state.agent_store
