"""PartialCollection - identity-keyed registry with an injection index."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterator
from typing import Any

from interpolant.config import DuplicatePolicy
from interpolant.exceptions import PartialAlreadyExistsError
from interpolant.globs import GlobEntry, rank
from interpolant.partials.fragment import ErrorRenderer, PartialFragment, RenderResult

log = logging.getLogger(__name__)

OnDuplicate = Callable[[PartialFragment], DuplicatePolicy]


class PartialCollection:
    """Registry of partial fragments.

    The injection index is rebuilt on every registration and holds one
    entry per (fragment, glob). Lookups pick the lowest wildcard weight,
    then the longest glob; remaining ties resolve to registration order.
    """

    def __init__(self, fragments: list[PartialFragment] | None = None):
        self.catalog: dict[str, PartialFragment] = {}
        self._index: list[GlobEntry] = []
        for fragment in fragments or []:
            self.register(fragment)

    def __contains__(self, identity: object) -> bool:
        return identity in self.catalog

    def __len__(self) -> int:
        return len(self.catalog)

    def __iter__(self) -> Iterator[PartialFragment]:
        return iter(self.catalog.values())

    def identities(self) -> list[str]:
        """Registered identities in registration order."""
        return list(self.catalog)

    def register(
        self,
        fragment: PartialFragment,
        on_duplicate: OnDuplicate | DuplicatePolicy | None = None,
    ) -> None:
        """Add *fragment*, resolving identity collisions with *on_duplicate*.

        *on_duplicate* is a policy name or a callable returning one; the
        default is ``overwrite``.

        Raises:
            PartialAlreadyExistsError: When the policy is ``throw``.
        """
        if fragment.identity in self.catalog and on_duplicate is not None:
            action = on_duplicate(fragment) if callable(on_duplicate) else on_duplicate
            if action == "throw":
                raise PartialAlreadyExistsError(fragment.identity)
            if action == "ignore":
                log.debug(f"Ignoring duplicate partial '{fragment.identity}'")
                return
            log.debug(f"Overwriting partial '{fragment.identity}'")

        self.catalog[fragment.identity] = fragment
        self._rebuild_index()
        log.debug(
            f"Registered partial '{fragment.identity}' "
            f"({len(self._index)} injection rules)"
        )

    def get(self, identity: str) -> PartialFragment | None:
        return self.catalog.get(identity)

    @property
    def index(self) -> list[GlobEntry]:
        """Current injection index (read-only copy)."""
        return list(self._index)

    def _rebuild_index(self) -> None:
        entries: list[GlobEntry] = []
        for fragment in self.catalog.values():
            if fragment.injection is None:
                continue
            for glob in fragment.injection.globs:
                entries.append(GlobEntry.build(fragment.identity, glob))
        self._index = entries

    def find_injectable_for_path(self, path: str | None) -> PartialFragment | None:
        """Return the most specific injectable fragment whose globs match *path*."""
        if not path:
            return None
        hits = rank(self._index, path)
        if not hits:
            return None
        return self.catalog.get(hits[0].identity)

    async def compose(
        self,
        result: RenderResult,
        path: str | None = None,
        on_error: ErrorRenderer | None = None,
    ) -> RenderResult:
        """Wrap *result* with the best injectable for *path*, if any.

        The wrapper is rendered with the same locals. A wrapper that rejects
        its locals, or raises, yields a non-interpolatable diagnostic result;
        this method never raises for wrapper failures.
        """
        wrapper = self.find_injectable_for_path(path)
        if wrapper is None or wrapper.injection is None:
            return result

        message = f"Injectable '{wrapper.identity}' failed to render"
        try:
            rendered: Any = wrapper.content(result.locals)
            if inspect.isawaitable(rendered):
                rendered = await rendered
        except Exception as e:
            log.warning(f"{message}: {e}")
            text = on_error(message, result.content, e) if on_error else None
            return RenderResult(
                content=text if text is not None else f"{message}: {e}",
                interpolate=False,
                locals=result.locals,
            )

        if not rendered.interpolate:
            text = on_error(message, result.content, None) if on_error else None
            return RenderResult(
                content=(
                    text
                    if text is not None
                    else f"{message}: wrapper reported invalid arguments"
                ),
                interpolate=False,
                locals=result.locals,
            )

        merged = result.content
        mode = wrapper.injection.mode
        if mode in ("prepend", "both"):
            merged = f"{rendered.content}\n{merged}"
        if mode in ("append", "both"):
            merged = f"{merged}\n{rendered.content}"

        log.debug(f"Composed '{wrapper.identity}' ({mode}) around {path}")
        return RenderResult(
            content=merged, interpolate=result.interpolate, locals=result.locals
        )
