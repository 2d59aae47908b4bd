from typing import Iterator, Optional

import numpy as np

from boneprune.scene.transform import Transform


class SceneNode:
    """
    Node of the host scene graph.

    Nodes are addressed by identity. A node may carry a skin component
    (``SkinBinding``) the same way a game object carries a mesh.
    """

    def __init__(self, name: str = "", transform: Optional[Transform] = None, active: bool = True):
        """
        :param self: The object itself
        :param name: The name of the node
        :param transform: The local transform of the node
        :param active: Whether the node is enabled in the scene
        """
        self.name = name
        self.transform = transform or Transform()
        self.active = active
        self.parent: Optional["SceneNode"] = None
        self.children: list["SceneNode"] = []
        self.skin = None
        self.source_index: Optional[int] = None
        self.destroyed = False

    def __repr__(self):
        return f"SceneNode({self.name!r}, children={len(self.children)})"

    # -------------------------------------------------
    # Hierarchy
    # -------------------------------------------------
    def add_child(self, child: "SceneNode", index: Optional[int] = None) -> "SceneNode":
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        if index is None:
            self.children.append(child)
        else:
            self.children.insert(index, child)
        return child

    def remove_child(self, child: "SceneNode") -> int:
        """
        Detach a child and return the sibling index it had.
        """
        index = self.children.index(child)
        del self.children[index]
        child.parent = None
        return index

    def iter_subtree(self) -> Iterator["SceneNode"]:
        """
        Pre-order walk, self first.
        """
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_ancestors(self) -> Iterator["SceneNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def is_ancestor_of(self, other: "SceneNode") -> bool:
        return any(a is self for a in other.iter_ancestors())

    def is_active_in_hierarchy(self) -> bool:
        return self.active and all(a.active for a in self.iter_ancestors())

    def find(self, name: str) -> Optional["SceneNode"]:
        for node in self.iter_subtree():
            if node.name == name:
                return node
        return None

    # -------------------------------------------------
    # Spatial
    # -------------------------------------------------
    def world_matrix(self) -> np.ndarray:
        m = self.transform.matrix()
        for ancestor in self.iter_ancestors():
            m = ancestor.transform.matrix() @ m
        return m

    def world_position(self) -> np.ndarray:
        return self.world_matrix()[:3, 3].copy()

    # -------------------------------------------------
    # Cloning
    # -------------------------------------------------
    def clone(self, name: Optional[str] = None) -> "SceneNode":
        """
        Deep copy of this subtree. Child order is preserved exactly, skin
        components are copied and point at the cloned bones where those bones
        live inside the subtree. Mesh assets stay shared.

        :param name: Optional name for the cloned root
        :return: The detached clone
        """
        mapping: dict[int, SceneNode] = {}

        def copy_node(node: SceneNode) -> SceneNode:
            dup = SceneNode(node.name, node.transform.copy(), node.active)
            dup.source_index = node.source_index
            mapping[id(node)] = dup
            for child in node.children:
                dup.add_child(copy_node(child))
            return dup

        root = copy_node(self)
        if name is not None:
            root.name = name

        for node in self.iter_subtree():
            if node.skin is not None:
                dup = mapping[id(node)]
                dup.skin = node.skin.rebind(dup, lambda bone: mapping.get(id(bone), bone))

        return root
