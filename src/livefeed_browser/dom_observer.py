"""
DOM-observation variant of interception.

Instead of hooking the page's socket, watch what the page renders: every
inserted node becomes a MutationTask fetching its outer HTML, and the ordered
queue hands the results out in insertion order.
"""

from typing import Any, Callable, Optional

from .cleaners import html_to_text
from .delivery import MutationTask, OrderedDeliveryQueue
from .events import ChildInserted, PageLoaded
from .session import BrowserSession

import logging
logger = logging.getLogger(__name__)


class DomObserver:
    """
    Emits PageLoaded after each load and ChildInserted for each inserted node.

    Args:
        session: A started session (borrowed, not owned)
        emit: Receives every event, in order
    """

    def __init__(self, session: BrowserSession, emit: Callable[[Any], Any]):
        self.session = session
        self.emit = emit
        self.document_node_id: Optional[int] = None
        self.queue = OrderedDeliveryQueue(self._deliver)
        self._detach: list[Callable[[], None]] = []

    async def attach(self) -> None:
        await self.session.send("DOM.enable")
        self._detach = [
            self.session.on_page_load(self._on_page_load),
            self.session.on_event("DOM.childNodeInserted", self._on_child_inserted),
        ]

    def detach(self) -> None:
        for remove in self._detach:
            remove()
        self._detach = []
        self.queue.clear()
        self.document_node_id = None

    async def _on_page_load(self, _params: dict) -> None:
        self.queue.clear()
        document = await self.session.send("DOM.getDocument", {"depth": -1})
        self.document_node_id = document["root"]["nodeId"]
        logger.debug(f"document node retrieved: {self.document_node_id}")
        self.emit(PageLoaded(document_node_id=self.document_node_id))

    def _on_child_inserted(self, params: dict) -> None:
        node_id = params["node"]["nodeId"]
        logger.debug(f"onChildInserted: {node_id}")
        self.queue.push(MutationTask(
            node_id=node_id,
            parent_node_id=params.get("parentNodeId"),
            previous_node_id=params.get("previousNodeId"),
            fetch=self.session.send("DOM.getOuterHTML", {"nodeId": node_id}),
        ))

    def _deliver(self, task: MutationTask, result: dict) -> None:
        html = result.get("outerHTML") or ""
        self.emit(ChildInserted(
            node_id=task.node_id,
            parent_node_id=task.parent_node_id,
            previous_node_id=task.previous_node_id,
            html=html,
            text=html_to_text(html),
        ))

    async def query_selector(self, selector: str) -> Optional[int]:
        """Node id of the first match in the current document, None if nothing matches."""
        if self.document_node_id is None:
            return None
        result = await self.session.send("DOM.querySelector", {
            "nodeId": self.document_node_id,
            "selector": selector,
        })
        node_id = result.get("nodeId") or None
        logger.debug(f"selector '{selector}' returned node {node_id}")
        return node_id

    async def query_selector_all(self, selector: str) -> list[int]:
        """Node ids of all matches in the current document."""
        if self.document_node_id is None:
            return []
        result = await self.session.send("DOM.querySelectorAll", {
            "nodeId": self.document_node_id,
            "selector": selector,
        })
        node_ids = result.get("nodeIds") or []
        logger.debug(f"selector '{selector}' returned nodes {node_ids}")
        return node_ids


__all__ = [
    "DomObserver",
]
