import numpy as np

# ------------------------------------------------------------
# Node matrices (glTF conventions: column vectors, quaternion x, y, z, w)
# ------------------------------------------------------------

def rotation_matrix(q) -> np.ndarray:
    """
    3x3 rotation from a unit quaternion (x, y, z, w).
    """
    x, y, z, w = (float(c) for c in q)
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=np.float32,
    )


def trs_matrix(translation, rotation, scale) -> np.ndarray:
    """
    Local node matrix M = T * R * S.
    Scaling the columns of R is R @ diag(S).
    """
    m = np.eye(4, dtype=np.float32)
    m[:3, :3] = rotation_matrix(rotation) * np.asarray(scale, dtype=np.float32)[:3]
    m[:3, 3] = np.asarray(translation, dtype=np.float32)[:3]
    return m


# ------------------------------------------------------------
# glTF stores matrices column-major as 16 floats
# ------------------------------------------------------------

def mat4_from_gltf(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float32).reshape(4, 4).T.copy()


def mat4_to_gltf(m: np.ndarray) -> list[float]:
    return [float(v) for v in np.asarray(m, dtype=np.float32).T.reshape(16)]
