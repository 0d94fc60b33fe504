from content_engine.models.space import Space
from content_engine.models.component import Component, ComponentStatus
from content_engine.models.content_node import ContentNode, NodeStatus

__all__ = ["Space", "Component", "ComponentStatus", "ContentNode", "NodeStatus"]
