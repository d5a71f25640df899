"""Column-major 4x4 matrix and quaternion helpers (glTF conventions).

Matrices are flat 16-element lists in column-major order, quaternions are
``(x, y, z, w)``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

Vec3 = tuple[float, float, float]
Quat = tuple[float, float, float, float]

IDENTITY_TRANSLATION: Vec3 = (0.0, 0.0, 0.0)
IDENTITY_ROTATION: Quat = (0.0, 0.0, 0.0, 1.0)
IDENTITY_SCALE: Vec3 = (1.0, 1.0, 1.0)


def mat4_identity() -> list[float]:
    return [
        1.0, 0.0, 0.0, 0.0,
        0.0, 1.0, 0.0, 0.0,
        0.0, 0.0, 1.0, 0.0,
        0.0, 0.0, 0.0, 1.0,
    ]


def mat4_mul(a: Sequence[float], b: Sequence[float]) -> list[float]:
    out = [0.0] * 16
    for c in range(4):
        for r in range(4):
            out[c * 4 + r] = (
                a[0 * 4 + r] * b[c * 4 + 0]
                + a[1 * 4 + r] * b[c * 4 + 1]
                + a[2 * 4 + r] * b[c * 4 + 2]
                + a[3 * 4 + r] * b[c * 4 + 3]
            )
    return out


def is_identity_matrix(m: Sequence[float], eps: float = 1e-9) -> bool:
    return all(abs(a - b) <= eps for a, b in zip(m, mat4_identity()))


def quat_to_mat4(q: Sequence[float]) -> list[float]:
    x, y, z, w = q
    xx, yy, zz = x * x, y * y, z * z
    xy, xz, yz = x * y, x * z, y * z
    wx, wy, wz = w * x, w * y, w * z
    return [
        1 - 2 * (yy + zz), 2 * (xy + wz), 2 * (xz - wy), 0.0,
        2 * (xy - wz), 1 - 2 * (xx + zz), 2 * (yz + wx), 0.0,
        2 * (xz + wy), 2 * (yz - wx), 1 - 2 * (xx + yy), 0.0,
        0.0, 0.0, 0.0, 1.0,
    ]


def trs_to_mat4(
    t: Sequence[float],
    r: Sequence[float],
    s: Sequence[float],
) -> list[float]:
    """Compose ``T * R * S``."""
    translate = mat4_identity()
    translate[12], translate[13], translate[14] = t
    scale = mat4_identity()
    scale[0], scale[5], scale[10] = s
    return mat4_mul(translate, mat4_mul(quat_to_mat4(r), scale))


def transform_point(m: Sequence[float], p: Sequence[float]) -> Vec3:
    x, y, z = p
    return (
        m[0] * x + m[4] * y + m[8] * z + m[12],
        m[1] * x + m[5] * y + m[9] * z + m[13],
        m[2] * x + m[6] * y + m[10] * z + m[14],
    )


def _determinant3(m: Sequence[float]) -> float:
    return (
        m[0] * (m[5] * m[10] - m[9] * m[6])
        - m[4] * (m[1] * m[10] - m[9] * m[2])
        + m[8] * (m[1] * m[6] - m[5] * m[2])
    )


def quat_from_rotation(r: Sequence[Sequence[float]]) -> Quat:
    """Quaternion from a row-indexed 3x3 rotation ``r[row][col]``."""
    m00, m01, m02 = r[0]
    m10, m11, m12 = r[1]
    m20, m21, m22 = r[2]
    trace = m00 + m11 + m22
    if trace > 0:
        s = 0.5 / math.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (m21 - m12) * s
        y = (m02 - m20) * s
        z = (m10 - m01) * s
    elif m00 > m11 and m00 > m22:
        s = 2.0 * math.sqrt(1.0 + m00 - m11 - m22)
        w = (m21 - m12) / s
        x = 0.25 * s
        y = (m01 + m10) / s
        z = (m02 + m20) / s
    elif m11 > m22:
        s = 2.0 * math.sqrt(1.0 + m11 - m00 - m22)
        w = (m02 - m20) / s
        x = (m01 + m10) / s
        y = 0.25 * s
        z = (m12 + m21) / s
    else:
        s = 2.0 * math.sqrt(1.0 + m22 - m00 - m11)
        w = (m10 - m01) / s
        x = (m02 + m20) / s
        y = (m12 + m21) / s
        z = 0.25 * s
    return quat_normalize((x, y, z, w))


def decompose_mat4(m: Sequence[float]) -> tuple[Vec3, Quat, Vec3]:
    """Split an affine matrix into translation, rotation, and scale.

    Shear is discarded.  A negative determinant is folded into the X scale.
    """
    translation = (m[12], m[13], m[14])
    sx = math.sqrt(m[0] ** 2 + m[1] ** 2 + m[2] ** 2)
    sy = math.sqrt(m[4] ** 2 + m[5] ** 2 + m[6] ** 2)
    sz = math.sqrt(m[8] ** 2 + m[9] ** 2 + m[10] ** 2)
    if _determinant3(m) < 0:
        sx = -sx
    scale = (sx, sy, sz)
    if sx == 0 or sy == 0 or sz == 0:
        return translation, IDENTITY_ROTATION, scale

    rotation = [[m[col * 4 + row] / scale[col] for col in range(3)] for row in range(3)]
    return translation, quat_from_rotation(rotation), scale


def quat_normalize(q: Sequence[float]) -> Quat:
    length = math.sqrt(sum(c * c for c in q))
    if length == 0:
        return IDENTITY_ROTATION
    return (q[0] / length, q[1] / length, q[2] / length, q[3] / length)


def quat_mul(a: Sequence[float], b: Sequence[float]) -> Quat:
    """Hamilton product ``a * b`` (apply *b* first, then *a*)."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return (
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    )


def is_identity_translation(t: Sequence[float]) -> bool:
    return t[0] == 0 and t[1] == 0 and t[2] == 0


def is_identity_rotation(r: Sequence[float]) -> bool:
    return r[0] == 0 and r[1] == 0 and r[2] == 0 and r[3] == 1


def is_identity_scale(s: Sequence[float]) -> bool:
    return s[0] == 1 and s[1] == 1 and s[2] == 1
