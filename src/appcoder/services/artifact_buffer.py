from __future__ import annotations


class ArtifactBuffer:
    """Append-only accumulator for the artifact text of the current request.

    Presenters may call :meth:`current` at any time. The buffer grows only by
    :meth:`append` while a request streams and is frozen once it drains.
    """

    def __init__(self) -> None:
        self._text = ""
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def reset(self) -> None:
        self._text = ""
        self._frozen = False

    def append(self, delta: str) -> str:
        if self._frozen:
            raise RuntimeError("artifact is complete; reset() before streaming a new one")
        self._text += delta
        return self._text

    def current(self) -> str:
        return self._text

    def freeze(self) -> str:
        self._frozen = True
        return self._text

    def __len__(self) -> int:
        return len(self._text)
