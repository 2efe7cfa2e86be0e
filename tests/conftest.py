import httpx
import pytest

from harmony_relay.main import create_app
from harmony_relay.services.agent_store import AgentStore
from harmony_relay.services.conversation_store import ConversationStore

from helpers import hello_stream, mock_client


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def make_app(store, tmp_path):
    def _make(handler=None, session=None):
        handler = handler or (lambda request: httpx.Response(200, content=hello_stream()))
        return create_app(
            store=store,
            client=mock_client(handler, session=session),
            agent_store=AgentStore(str(tmp_path / "agents")),
        )
    return _make
