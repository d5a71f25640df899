"""Binary GLB container codec."""

from aecar.container.codec import Container, read_container, write_container

__all__ = ["Container", "read_container", "write_container"]
