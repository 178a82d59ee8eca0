"""Uploaded files from multipart form submissions."""

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

UPLOAD_OK = 0


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """An uploaded file held in memory.

    Immutable metadata with the content as bytes (suitable for typical
    web uploads). A non-zero *error* marks a failed upload.

    ``move_to()`` may be called once; the content is written to the
    target and the file counts as moved afterwards.
    """

    content: bytes = field(repr=False)
    filename: str | None = None
    media_type: str | None = None
    size: int | None = None
    error: int = UPLOAD_OK

    # Private: mutable move state (the dict is mutable, the field reference is not)
    _state: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.size is None:
            object.__setattr__(self, "size", len(self.content))

    @property
    def moved(self) -> bool:
        return self._state.get("moved", False)

    def read(self) -> bytes:
        """Return the file content as bytes."""
        if self.moved:
            msg = "Cannot read an uploaded file after it has been moved."
            raise RuntimeError(msg)
        return self.content

    def stream(self) -> io.BytesIO:
        """Return a fresh binary stream over the content."""
        return io.BytesIO(self.read())

    def move_to(self, target: str | Path) -> Path:
        """Write the content to *target*.

        Raises:
            RuntimeError: On a second call, or if the upload failed.
            ValueError: If the target directory does not exist.
        """
        if self.moved:
            msg = "Subsequent calls of move_to are not allowed."
            raise RuntimeError(msg)
        path = Path(target)
        if not path.parent.is_dir():
            msg = f"The target path {str(path)!r} is invalid."
            raise ValueError(msg)
        if self.error != UPLOAD_OK:
            msg = f"An error occurred during file upload (code {self.error})."
            raise RuntimeError(msg)
        path.write_bytes(self.content)
        self._state["moved"] = True
        return path
