import logging
from typing import Optional

from boneprune.scene.node import SceneNode

logger = logging.getLogger(__name__)


class DestroyRecord:
    """
    One destroyed subtree: enough to put it back where it was.
    """

    def __init__(self, node: SceneNode, parent: Optional[SceneNode], sibling_index: int):
        self.node = node
        self.parent = parent
        self.sibling_index = sibling_index

    def restore(self):
        for n in self.node.iter_subtree():
            n.destroyed = False
        if self.parent is not None:
            self.parent.add_child(self.node, self.sibling_index)


class UndoGroup:
    def __init__(self, name: str):
        self.name = name
        self.records: list[DestroyRecord] = []


class UndoStack:
    """
    Records destructive scene edits so they can be reverted as a group.
    """

    def __init__(self):
        self._groups: list[UndoGroup] = []

    def __len__(self):
        return len(self._groups)

    def push(self, group: UndoGroup):
        if group.records:
            self._groups.append(group)

    def destroy(self, node: SceneNode, group: UndoGroup):
        """
        Detach ``node`` with its whole subtree and record it in ``group``.
        """
        parent = node.parent
        index = parent.remove_child(node) if parent is not None else 0
        for n in node.iter_subtree():
            n.destroyed = True
        group.records.append(DestroyRecord(node, parent, index))

    def undo(self) -> Optional[str]:
        """
        Revert the most recent group. Records are restored in reverse order so
        sibling indices line up again.

        :return: The name of the reverted group, or None if nothing to undo
        """
        if not self._groups:
            return None
        group = self._groups.pop()
        for record in reversed(group.records):
            record.restore()
        logger.info(f"Undo '{group.name}': restored {len(group.records)} node(s)")
        return group.name
