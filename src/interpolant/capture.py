"""Capture - persist executed output and expose it to later interpolations.

A capture spec says where a result goes: a relative file (optionally added to
.gitignore) or an in-memory ``history`` key. Templates read the history back
when it is bound into their context, e.g. ``${captured["step1"].text()}``.

Usage:
    factory = capture_factory(
        is_capturable=lambda task, op: [parse_capture_spec(task.capture)],
        prepare_captured=lambda op, task: Captured(op.stdout),
    )
    await factory.capture(task, op)
    engine = InterpolationEngine(
        interp_ctx=lambda purpose, **_: {"captured": factory.history},
    )
"""

from __future__ import annotations

import functools
import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from interpolant.exceptions import CaptureIOError
from interpolant.gitignore import register_gitignore
from interpolant.text import ensure_trailing_newline

log = logging.getLogger(__name__)

Ctx = TypeVar("Ctx")
Op = TypeVar("Op")


class RelFsPathCapture(BaseModel):
    """Write the captured text to a path relative to the capture root."""

    model_config = ConfigDict(frozen=True)

    nature: Literal["relFsPath"] = "relFsPath"
    fs_path: str = Field(min_length=1)
    gitignore: Union[bool, str] = False

    @property
    def repo_relative(self) -> str:
        """The path without its leading ``./``, as written to .gitignore."""
        return self.fs_path[2:] if self.fs_path.startswith("./") else self.fs_path


class MemoryCapture(BaseModel):
    """Store the captured adapter in ``history[key]``."""

    model_config = ConfigDict(frozen=True)

    nature: Literal["memory"] = "memory"
    key: str = Field(min_length=1)


CaptureSpec = Annotated[
    Union[RelFsPathCapture, MemoryCapture], Field(discriminator="nature")
]

_capture_spec_adapter: TypeAdapter[CaptureSpec] = TypeAdapter(CaptureSpec)


def parse_capture_spec(
    text: str, gitignore: Union[bool, str, None] = None
) -> RelFsPathCapture | MemoryCapture:
    """Turn the external string form into a spec.

    ``./out/report.txt`` becomes a relative-path capture (carrying *gitignore*);
    any other string is a memory key.
    """
    if text.startswith("./"):
        return RelFsPathCapture(fs_path=text, gitignore=gitignore or False)
    return MemoryCapture(key=text)


def coerce_capture_spec(value: Any) -> RelFsPathCapture | MemoryCapture:
    """Accept a spec model, its dict form, or the external string form."""
    if isinstance(value, (RelFsPathCapture, MemoryCapture)):
        return value
    if isinstance(value, str):
        return parse_capture_spec(value)
    return _capture_spec_adapter.validate_python(value)


class Captured:
    """Adapter over captured output with ``text()`` and ``json()``.

    *source* is the text itself or a zero-argument callable producing it.
    """

    def __init__(self, source: str | Callable[[], str]):
        self._source = source

    def text(self) -> str:
        if callable(self._source):
            return self._source()
        return self._source

    def json(self) -> Any:
        return json.loads(self.text())

    def __str__(self) -> str:
        return self.text()

    def __repr__(self) -> str:
        return f"Captured({self.text()[:40]!r})"


History = dict[str, Captured]
OnCapture = Callable[
    [Union[RelFsPathCapture, MemoryCapture], Captured, History],
    Optional[Awaitable[None]],
]


def _write_capture(spec: RelFsPathCapture, cap: Captured, root: Path) -> Path:
    path = root / spec.fs_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(ensure_trailing_newline(cap.text()), encoding="utf-8")
    except OSError as e:
        raise CaptureIOError(str(path), e) from e
    log.info(f"Captured output to {path}")
    return path


def typical_on_capture(
    spec: RelFsPathCapture | MemoryCapture,
    cap: Captured,
    history: History,
    root: Path | str = ".",
) -> None:
    """Write path captures to disk and store memory captures in *history*.

    Raises:
        CaptureIOError: If the file cannot be written.
    """
    if isinstance(spec, RelFsPathCapture):
        _write_capture(spec, cap, Path(root))
    else:
        history[spec.key] = cap
        log.debug(f"Captured output to history['{spec.key}']")


def gitignorable_on_capture(
    spec: RelFsPathCapture | MemoryCapture,
    cap: Captured,
    history: History,
    root: Path | str = ".",
) -> None:
    """Like :func:`typical_on_capture`, also registering path captures in .gitignore.

    A string ``gitignore`` value is written as a comment above the rule.

    Raises:
        CaptureIOError: If the file or .gitignore cannot be written.
    """
    if not isinstance(spec, RelFsPathCapture):
        history[spec.key] = cap
        return

    root = Path(root)
    _write_capture(spec, cap, root)
    if not spec.gitignore:
        return

    comment = spec.gitignore if isinstance(spec.gitignore, str) else None
    try:
        register_gitignore(spec.repo_relative, comment, root=root)
    except OSError as e:
        raise CaptureIOError(str(root / ".gitignore"), e) from e


class CaptureFactory(Generic[Ctx, Op]):
    """Decides whether to capture an operation and performs the captures.

    Args:
        is_capturable: ``(ctx, op) -> False | [spec, ...]``. Specs may be
            models, dicts or the external string form.
        prepare_captured: ``(op, ctx) -> Captured``.
        on_capture: ``(spec, cap, history)``, sync or async. Defaults to
            :func:`typical_on_capture` bound to *root*.
        root: Directory relative capture paths resolve against.
    """

    def __init__(
        self,
        is_capturable: Callable[[Ctx, Op], Any],
        prepare_captured: Callable[[Op, Ctx], Captured],
        on_capture: OnCapture | None = None,
        root: Path | str = ".",
    ):
        self.is_capturable = is_capturable
        self.prepare_captured = prepare_captured
        self.root = Path(root)
        self.on_capture: OnCapture = on_capture or functools.partial(
            typical_on_capture, root=self.root
        )
        self.history: History = {}

    async def capture(self, ctx: Ctx, op: Op) -> list[RelFsPathCapture | MemoryCapture]:
        """Capture *op* for every spec *ctx* asks for; returns the specs used.

        Raises:
            CaptureIOError: Propagated from the capture handler.
        """
        specs = self.is_capturable(ctx, op)
        if not specs:
            return []

        resolved = [coerce_capture_spec(s) for s in specs]
        cap = self.prepare_captured(op, ctx)
        for spec in resolved:
            outcome = self.on_capture(spec, cap, self.history)
            if inspect.isawaitable(outcome):
                await outcome
        return resolved


class SyncCaptureFactory(Generic[Ctx]):
    """Synchronous capture of a single spec per context."""

    def __init__(
        self,
        is_capturable: Callable[[Ctx], Any],
        prepare_capture: Callable[[Ctx], Captured],
        on_capture: Callable[..., None] | None = None,
        root: Path | str = ".",
    ):
        self.is_capturable = is_capturable
        self.prepare_captured = prepare_capture
        self.root = Path(root)
        self.on_capture = on_capture or functools.partial(
            typical_on_capture, root=self.root
        )
        self.history: History = {}

    def capture(self, ctx: Ctx) -> RelFsPathCapture | MemoryCapture | None:
        spec = self.is_capturable(ctx)
        if not spec:
            return None
        resolved = coerce_capture_spec(spec)
        self.on_capture(resolved, self.prepare_captured(ctx), self.history)
        return resolved


def capture_factory(
    is_capturable: Callable[[Ctx, Op], Any],
    prepare_captured: Callable[[Op, Ctx], Captured],
    on_capture: OnCapture | None = None,
    root: Path | str = ".",
) -> CaptureFactory[Ctx, Op]:
    return CaptureFactory(is_capturable, prepare_captured, on_capture, root)


def capture_factory_sync(
    is_capturable: Callable[[Ctx], Any],
    prepare_capture: Callable[[Ctx], Captured],
    on_capture: Callable[..., None] | None = None,
    root: Path | str = ".",
) -> SyncCaptureFactory[Ctx]:
    return SyncCaptureFactory(is_capturable, prepare_capture, on_capture, root)
