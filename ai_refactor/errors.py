"""Error taxonomy for resolution, parsing and patch application."""

from typing import Optional


class RefactorError(Exception):
    pass


class SandboxViolation(RefactorError):
    """A path canonicalizes outside the workspace root."""

    def __init__(self, path, root, reason: str = ""):
        self.path = str(path)
        self.root = str(root)
        msg = reason or f"path is outside of the workspace ({self.root})"
        super().__init__(f"{self.path}: {msg}")


class UnresolvedImport(RefactorError):
    def __init__(self, name: str, importer: Optional[str] = None):
        self.name = name
        self.importer = importer
        suffix = f" (imported from {importer})" if importer else ""
        super().__init__(f"missing import {name}{suffix}")


class SearchNotFound(RefactorError):
    """A patch operation's search text is empty or absent from the current content."""

    def __init__(self, path: str, index: int, search: str, reason: str = ""):
        self.path = path
        self.index = index
        self.search = search
        msg = reason or f"search block {index} not found: {search[:80]!r}"
        super().__init__(f"{path}: {msg}")


class MalformedCommand(RefactorError):
    def __init__(self, tag: str, reason: str, path: str = ""):
        self.tag = tag
        self.reason = reason
        self.path = path
        where = f" {path}" if path else ""
        super().__init__(f"<{tag}>{where}: {reason}")


class NoCommandsFound(RefactorError):
    pass


class TaskNotFound(RefactorError):
    pass


class ModelError(RefactorError):
    pass
