# harmony_relay/services/agent_store.py
"""Agent profiles: one markdown file per agent, id = file stem."""
from __future__ import annotations

import logging
import os
import re
import threading
from typing import List, Optional

from harmony_relay.core.config import AGENTS_DIR
from harmony_relay.models.agents import AgentProfile

logger = logging.getLogger("harmony.agent_store")

SLUG_MAX = 60


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")[:SLUG_MAX]
    return slug or "agent"


def extract_label(content: str, fallback: str) -> str:
    """First markdown heading without its hashes, else ``fallback``."""
    for line in content.splitlines():
        if line.strip().startswith("#"):
            return re.sub(r"^#+\s*", "", line.strip()).strip() or fallback
    return fallback


class AgentStore:
    def __init__(self, root: str = AGENTS_DIR):
        self.root = root
        self._lock = threading.Lock()

    def _ensure_dir(self) -> None:
        os.makedirs(self.root, exist_ok=True)

    def _path(self, agent_id: str) -> str:
        return os.path.join(self.root, f"{agent_id}.md")

    def _inside_root(self, agent_id: str) -> bool:
        """An id names a file directly in ``root``, never a path out of it."""
        if not agent_id or agent_id in (".", ".."):
            return False
        if any(sep and sep in agent_id for sep in ("/", "\\", os.sep, os.altsep)):
            return False
        root = os.path.realpath(self.root)
        return os.path.dirname(os.path.realpath(self._path(agent_id))) == root

    def list_agents(self) -> List[AgentProfile]:
        self._ensure_dir()
        agents: List[AgentProfile] = []
        for entry in os.listdir(self.root):
            if not entry.lower().endswith(".md"):
                continue
            with open(os.path.join(self.root, entry), "r", encoding="utf-8") as f:
                prompt = f.read()
            agent_id = os.path.splitext(entry)[0]
            agents.append(AgentProfile(id=agent_id, label=extract_label(prompt, agent_id), prompt=prompt))
        agents.sort(key=lambda a: a.label.lower())
        logger.debug("list_agents root=%s count=%d", self.root, len(agents))
        return agents

    def get_agent_prompt(self, agent_id: str) -> Optional[str]:
        """Prompt text, or ``None`` when the id is unknown or escapes ``root``."""
        if not self._inside_root(agent_id):
            logger.debug("get_agent_prompt rejected id=%r", agent_id)
            return None
        try:
            with open(self._path(agent_id), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def create(self, label: str, prompt: str) -> str:
        """Write a new profile and return its id."""
        label = label.strip()
        prompt = prompt.strip()
        base = slugify(label)
        with self._lock:
            self._ensure_dir()
            candidate, counter = base, 1
            while os.path.exists(self._path(candidate)):
                counter += 1
                candidate = f"{base}-{counter}"
            content = prompt if prompt.startswith("#") else f"# {label}\n\n{prompt}"
            with open(self._path(candidate), "w", encoding="utf-8") as f:
                f.write(content)
        logger.info("agent created id=%s label=%s", candidate, label)
        return candidate
