"""Default collaborator implementations over a local folder of notes."""

from .filesystem import FileVault

__all__ = ["FileVault"]
