import logging
from typing import Iterable, Optional

from boneprune.scene.node import SceneNode
from boneprune.skinning.bone_set import collect_bone_set, get_skin_bindings

logger = logging.getLogger(__name__)


class BoneInfo:
    """
    Node of the pruned bone forest.

    Only references the scene node; dropping a BoneInfo never touches the scene.
    """

    def __init__(self, bone: SceneNode, children: Optional[list["BoneInfo"]] = None, depth: int = 0):
        self.bone = bone
        self.deleted = False
        self.children: list[BoneInfo] = list(children or [])
        self.depth = depth

    def __repr__(self):
        return f"BoneInfo({self.name!r}, depth={self.depth}, deleted={self.deleted})"

    @property
    def name(self) -> str:
        return self.bone.name

    def set_deleted(self, deleted: bool):
        """
        Set the flag on this node and on its whole owned subtree.
        """
        self.deleted = deleted
        for child in self.children:
            child.set_deleted(deleted)


# ------------------------------------------------------------
# Extraction
# ------------------------------------------------------------

def _contains_bone(node: SceneNode, bone_set: set[SceneNode]) -> bool:
    return any(n in bone_set for n in node.iter_subtree())


def _bone_to_tree_node(node: SceneNode, bone_set: set[SceneNode], visited: set[SceneNode], depth: int) -> BoneInfo:
    visited.add(node)
    children = []
    for child in node.children:
        if child in visited:
            continue
        # grouping nodes stay in the tree only if they hold bones
        if child in bone_set or _contains_bone(child, bone_set):
            children.append(_bone_to_tree_node(child, bone_set, visited, depth + 1))
    return BoneInfo(node, children, depth)


def extract_bone_forest(
    model: SceneNode,
    bone_set: Optional[set[SceneNode]] = None,
    include_inactive: bool = True,
) -> list[BoneInfo]:
    """
    Build one BoneInfo tree per distinct root bone of the skin bindings
    under ``model``.

    Scene children that are bones, or that have a bone anywhere below them,
    are kept. Everything else is left out of the forest.

    :param model: The model root
    :param bone_set: Distinct skinning bones, collected from ``model`` if omitted
    :param include_inactive: Also consider bindings on disabled nodes
    :return: The forest roots, empty if the model has no bindings
    """
    bindings = get_skin_bindings(model, include_inactive)
    if bone_set is None:
        bone_set = collect_bone_set(bindings)

    candidates: list[SceneNode] = []
    for binding in bindings:
        root = binding.root_bone
        if root is not None and root not in candidates:
            candidates.append(root)

    # a root nested under another root is already part of that tree
    roots = [r for r in candidates if not any(c.is_ancestor_of(r) for c in candidates)]

    visited: set[SceneNode] = set()
    forest = []
    for root in roots:
        if root in visited:
            continue
        forest.append(_bone_to_tree_node(root, bone_set, visited, 0))

    logger.debug(f"Extracted {len(forest)} root(s) covering {len(visited)} node(s)")
    return forest


# ------------------------------------------------------------
# Flattening
# ------------------------------------------------------------

def _flatten_into(info: BoneInfo, out: list[BoneInfo]):
    for child in info.children:
        _flatten_into(child, out)
    out.append(info)


def flatten_forest(roots: Iterable[BoneInfo]) -> list[BoneInfo]:
    """
    Post-order flattening: every child comes before its parent. The order is
    a pure function of the tree shape, so a cloned model flattens to a list
    whose positions match the original's.
    """
    out: list[BoneInfo] = []
    for root in roots:
        _flatten_into(root, out)
    return out


def deleted_bones(roots: Iterable[BoneInfo]) -> list[BoneInfo]:
    """
    Flattened, deduplicated deletion set.
    """
    seen: set[SceneNode] = set()
    out = []
    for info in flatten_forest(roots):
        if info.deleted and info.bone not in seen:
            seen.add(info.bone)
            out.append(info)
    return out


def find_bone_info(roots: Iterable[BoneInfo], name: str) -> Optional[BoneInfo]:
    for info in flatten_forest(roots):
        if info.name == name:
            return info
    return None


def format_forest(roots: Iterable[BoneInfo], indent: str = "  ") -> str:
    lines = []

    def walk(info: BoneInfo):
        mark = "x" if info.deleted else " "
        lines.append(f"{indent * info.depth}[{mark}] {info.name}")
        for child in info.children:
            walk(child)

    for root in roots:
        walk(root)
    return "\n".join(lines)
