import numpy as np

from boneprune.scene.transform_utils import trs_matrix


class Transform:
    def __init__(self, position=(0, 0, 0), rotation=(0.0, 0.0, 0.0, 1.0), scale=(1, 1, 1), matrix=None):
        """
        Local transform of a scene node.

        :param self: The object itself
        :param position: The position of the transform
        :param rotation: The rotation of the transform (quaternion x, y, z, w)
        :param scale: The scale of the transform
        :param matrix: Optional explicit 4x4 local matrix, overrides TRS
        """
        self.position = np.array(position, dtype=np.float32)
        self.rotation = np.array(rotation, dtype=np.float32)
        self.scale    = np.array(scale, dtype=np.float32)
        self._matrix  = None if matrix is None else np.array(matrix, dtype=np.float32).reshape(4, 4)

    @property
    def has_matrix(self) -> bool:
        return self._matrix is not None

    def matrix(self) -> np.ndarray:
        """
        Local 4x4 matrix (row-major, column vectors).

        :param self: The object itself
        """
        if self._matrix is not None:
            return self._matrix.copy()
        return trs_matrix(self.position, self.rotation, self.scale)

    def copy(self) -> "Transform":
        return Transform(
            position=self.position,
            rotation=self.rotation,
            scale=self.scale,
            matrix=self._matrix,
        )
