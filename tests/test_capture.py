"""Tests for capture specs, handlers and factories."""

import functools

import pytest

from interpolant import InterpolationEngine
from interpolant.capture import (
    Captured,
    MemoryCapture,
    RelFsPathCapture,
    capture_factory,
    capture_factory_sync,
    coerce_capture_spec,
    gitignorable_on_capture,
    parse_capture_spec,
    typical_on_capture,
)
from interpolant.exceptions import CaptureIOError


class TestCaptureSpec:
    def test_relative_path_form(self):
        """./ marks a filesystem capture."""
        spec = parse_capture_spec("./out/result.txt", gitignore="generated")
        assert spec == RelFsPathCapture(fs_path="./out/result.txt", gitignore="generated")
        assert spec.repo_relative == "out/result.txt"

    def test_memory_form(self):
        """Anything else is a memory key."""
        assert parse_capture_spec("step1") == MemoryCapture(key="step1")

    def test_coerce_dict(self):
        """Dict forms are validated by nature."""
        spec = coerce_capture_spec({"nature": "relFsPath", "fs_path": "./a.txt", "gitignore": True})
        assert isinstance(spec, RelFsPathCapture)
        assert spec.gitignore is True
        with pytest.raises(Exception):
            coerce_capture_spec({"nature": "bogus"})


class TestCaptured:
    def test_text_json_and_str(self):
        """Captured exposes text, parsed json and str()."""
        cap = Captured('{"rows": 3}')
        assert cap.text() == '{"rows": 3}'
        assert cap.json() == {"rows": 3}
        assert str(cap) == '{"rows": 3}'

    def test_lazy_source(self):
        """A callable source is read on demand."""
        state = {"out": "a"}
        cap = Captured(lambda: state["out"])
        state["out"] = "b"
        assert cap.text() == "b"


class TestOnCapture:
    def test_typical_writes_with_single_newline(self, tmp_path):
        """Files end with exactly one newline."""
        history = {}
        typical_on_capture(
            RelFsPathCapture(fs_path="./out/a.txt"), Captured("x\n\n"), history, root=tmp_path
        )
        assert (tmp_path / "out" / "a.txt").read_text() == "x\n"
        assert history == {}

    def test_memory_overwrites_by_key(self):
        """Memory captures are last-write-wins."""
        history = {}
        typical_on_capture(MemoryCapture(key="k"), Captured("1"), history)
        typical_on_capture(MemoryCapture(key="k"), Captured("2"), history)
        assert history["k"].text() == "2"

    def test_gitignorable_adds_rule_once(self, tmp_path):
        """The capture path is added to .gitignore with its comment, once."""
        spec = RelFsPathCapture(fs_path="./out/a.txt", gitignore="captured output")
        gitignorable_on_capture(spec, Captured("x"), {}, root=tmp_path)
        gitignorable_on_capture(spec, Captured("y"), {}, root=tmp_path)

        assert (tmp_path / "out" / "a.txt").read_text() == "y\n"
        assert (tmp_path / ".gitignore").read_text() == "# captured output\nout/a.txt\n"

    def test_gitignorable_without_flag(self, tmp_path):
        """No gitignore flag means no .gitignore changes."""
        gitignorable_on_capture(
            RelFsPathCapture(fs_path="./a.txt"), Captured("x"), {}, root=tmp_path
        )
        assert not (tmp_path / ".gitignore").exists()

    def test_gitignorable_keeps_existing_content(self, tmp_path):
        """Rules are appended after existing content."""
        (tmp_path / ".gitignore").write_text("node_modules")
        spec = RelFsPathCapture(fs_path="./a.txt", gitignore=True)
        gitignorable_on_capture(spec, Captured("x"), {}, root=tmp_path)
        assert (tmp_path / ".gitignore").read_text() == "node_modules\na.txt\n"

    def test_gitignore_is_utf8(self, tmp_path):
        """Non-ASCII comments are written as UTF-8 and still deduplicate."""
        (tmp_path / ".gitignore").write_text("# café\n", encoding="utf-8")
        spec = RelFsPathCapture(fs_path="./a.txt", gitignore="généré")
        gitignorable_on_capture(spec, Captured("x"), {}, root=tmp_path)
        gitignorable_on_capture(spec, Captured("x"), {}, root=tmp_path)
        assert (tmp_path / ".gitignore").read_text(encoding="utf-8") == (
            "# café\n# généré\na.txt\n"
        )

    def test_write_failure_raises_capture_io_error(self, tmp_path):
        """I/O failures propagate as CaptureIOError."""
        (tmp_path / "blocker").write_text("file, not a directory")
        with pytest.raises(CaptureIOError) as exc_info:
            typical_on_capture(
                RelFsPathCapture(fs_path="./blocker/a.txt"), Captured("x"), {}, root=tmp_path
            )
        assert isinstance(exc_info.value.__cause__, OSError)


class TestFactories:
    @pytest.mark.asyncio
    async def test_capture_to_memory_then_interpolate(self):
        """A captured result is readable by later templates."""
        factory = capture_factory(
            is_capturable=lambda task, op: task.get("capture") and [task["capture"]],
            prepare_captured=lambda op, task: Captured(op["stdout"]),
        )
        specs = await factory.capture({"capture": "step1"}, {"stdout": "42 rows"})
        assert specs == [MemoryCapture(key="step1")]

        engine = InterpolationEngine(
            interp_ctx=lambda purpose, **_: {"captured": factory.history}
        )
        result = await engine.interpolate_unsafely(
            {"source": 'got ${captured["step1"].text()}'}
        )
        assert result.source == "got 42 rows"

    @pytest.mark.asyncio
    async def test_not_capturable(self):
        """False from is_capturable skips preparing the capture."""
        prepared = []
        factory = capture_factory(
            is_capturable=lambda task, op: False,
            prepare_captured=lambda op, task: prepared.append(op) or Captured(""),
        )
        assert await factory.capture({}, {}) == []
        assert prepared == []
        assert factory.history == {}

    @pytest.mark.asyncio
    async def test_async_on_capture_and_multiple_specs(self, tmp_path):
        """Async handlers are awaited once per spec."""
        seen = []

        async def on_capture(spec, cap, history):
            seen.append(spec.nature)
            typical_on_capture(spec, cap, history, root=tmp_path)

        factory = capture_factory(
            is_capturable=lambda task, op: ["./out.txt", "mem"],
            prepare_captured=lambda op, task: Captured(op),
            on_capture=on_capture,
        )
        await factory.capture(None, "result")
        assert seen == ["relFsPath", "memory"]
        assert (tmp_path / "out.txt").read_text() == "result\n"
        assert factory.history["mem"].text() == "result"

    def test_sync_factory(self, tmp_path):
        """The sync factory captures a single spec."""
        factory = capture_factory_sync(
            is_capturable=lambda task: task["to"],
            prepare_capture=lambda task: Captured(task["out"]),
            on_capture=functools.partial(gitignorable_on_capture, root=tmp_path),
        )
        assert factory.capture({"to": "k", "out": "v"}) == MemoryCapture(key="k")
        assert factory.history["k"].text() == "v"
        assert factory.capture({"to": False, "out": "v"}) is None

    @pytest.mark.asyncio
    async def test_root_resolves_relative_paths(self, tmp_path):
        """The default handler writes path captures under the factory root."""
        factory = capture_factory(
            is_capturable=lambda task, op: ["./out/report.txt"],
            prepare_captured=lambda op, task: Captured(op),
            root=tmp_path,
        )
        await factory.capture(None, "done")
        assert (tmp_path / "out" / "report.txt").read_text() == "done\n"

    def test_sync_root(self, tmp_path):
        """The sync factory honours root too."""
        factory = capture_factory_sync(
            is_capturable=lambda task: "./a.txt",
            prepare_capture=lambda task: Captured("v"),
            root=tmp_path,
        )
        factory.capture({})
        assert (tmp_path / "a.txt").read_text() == "v\n"
