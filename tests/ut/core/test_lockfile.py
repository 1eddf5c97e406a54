"""锁定文件存储、序列化与升级单元测试"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

import pytest

from pio2nix.core.dep.models import Artifact, Dependency, PerPlatform, Universal
from pio2nix.core.exceptions import LockfileError, SchemaError
from pio2nix.core.lockfile import (
    CURRENT_VERSION,
    LockfileStore,
    LockfileV1,
    LockfileV2,
    StoreState,
    load_lockfile,
    parse_lockfile,
    read_lockfile,
    serialize_lockfile,
    upgrade_lockfile,
    write_lockfile,
)
from pio2nix.core.manifest import PackageType
from pio2nix.core.platforms import Platform

HASH = "sha256-" + "A" * 43 + "="
MANIFEST = '{"type":"tool","version":"1.0.0","spec":{"owner":"platformio","name":"tool-x"}}'
MANIFEST_LIB = '{"type":"library","version":"2.0.0","spec":{"owner":"bob","name":"libfoo"}}'


def _dep(version: str = "1.0.0", manifest: str = MANIFEST) -> Dependency:
    return Dependency(
        name="tool-x",
        version=version,
        kind=PackageType.TOOL,
        source=Universal(Artifact("https://dl/tool-x.tar.gz", HASH)),
        manifest=manifest,
    )


class TestLockfileStore:
    def test_insert_and_get(self) -> None:
        store = LockfileStore()
        assert store.insert("packages/tool-x", _dep()) is None
        assert "packages/tool-x" in store
        assert len(store) == 1
        assert store.get("packages/tool-x") == _dep()

    def test_same_manifest_is_silent(self, caplog: pytest.LogCaptureFixture) -> None:
        store = LockfileStore()
        with caplog.at_level(logging.WARNING):
            store.insert("packages/tool-x", _dep())
            assert store.insert("packages/tool-x", _dep()) is None
        assert store.conflicts == []
        assert caplog.records == []

    def test_conflict_last_write_wins(self, caplog: pytest.LogCaptureFixture) -> None:
        other_manifest = MANIFEST.replace("1.0.0", "1.1.0")
        store = LockfileStore()
        store.insert("packages/tool-x", _dep())
        with caplog.at_level(logging.WARNING):
            conflict = store.insert("packages/tool-x", _dep("1.1.0", other_manifest))
        assert conflict is not None
        assert conflict.message == 'Found duplicate dependency "tool-x@1.0.0", using "tool-x@1.1.0"'
        assert store.get("packages/tool-x").version == "1.1.0"
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].getMessage() == conflict.message

    def test_finalize_sorted(self) -> None:
        store = LockfileStore()
        store.insert("platforms/b", _dep())
        store.insert("libdeps/a", _dep())
        lockfile = store.finalize()
        assert list(lockfile.dependencies) == ["libdeps/a", "platforms/b"]
        assert store.state is StoreState.FINALIZED

    def test_insert_after_finalize(self) -> None:
        store = LockfileStore()
        store.finalize()
        with pytest.raises(LockfileError):
            store.insert("packages/tool-x", _dep())

    def test_concurrent_inserts(self) -> None:
        store = LockfileStore()

        def worker(n: int) -> None:
            for i in range(50):
                store.insert(f"packages/p{n}-{i}", _dep())

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store) == 400


class TestSerialize:
    def test_shape(self) -> None:
        store = LockfileStore()
        store.insert("packages/tool-x", _dep())
        store.insert("packages/tool-y", Dependency(
            name="tool-y", version="2", kind=PackageType.TOOL,
            source=PerPlatform({
                Platform.X86_64_LINUX: Artifact("https://dl/l", HASH),
                Platform.AARCH64_DARWIN: Artifact("https://dl/d", HASH),
            }),
            manifest=MANIFEST,
        ))
        data = json.loads(serialize_lockfile(store.finalize()))
        assert data["version"] == CURRENT_VERSION == "V2"
        assert data["dependencies"]["packages/tool-x"] == {
            "name": "tool-x",
            "version": "1.0.0",
            "manifest": MANIFEST,
            "src": {"external": "universal", "url": "https://dl/tool-x.tar.gz", "hash": HASH},
        }
        src = data["dependencies"]["packages/tool-y"]["src"]
        assert list(src) == ["external", "aarch64-darwin", "x86_64-linux"]

    def test_deterministic(self) -> None:
        a, b = LockfileStore(), LockfileStore()
        a.insert("packages/x", _dep())
        a.insert("libdeps/y", _dep())
        b.insert("libdeps/y", _dep())
        b.insert("packages/x", _dep())
        assert serialize_lockfile(a.finalize()) == serialize_lockfile(b.finalize())

    def test_roundtrip_through_file(self, tmp_path: Path) -> None:
        store = LockfileStore()
        store.insert("packages/tool-x", _dep())
        lockfile = store.finalize()
        path = write_lockfile(lockfile, tmp_path / "out" / "platformio2nix.lock")
        assert path.read_text(encoding="utf-8").endswith("}\n")
        assert read_lockfile(path) == lockfile


class TestParse:
    def test_unknown_version(self) -> None:
        with pytest.raises(LockfileError, match="V9"):
            parse_lockfile('{"version": "V9", "dependencies": {}}')

    def test_missing_version(self) -> None:
        with pytest.raises(LockfileError):
            parse_lockfile('{"dependencies": {}}')

    def test_invalid_json(self) -> None:
        with pytest.raises(SchemaError):
            parse_lockfile("not json", source="x.lock")

    def test_bad_hash_reports_path(self) -> None:
        raw = json.dumps({"version": "V2", "dependencies": {"packages/tool-x": {
            "name": "tool-x", "version": "1", "manifest": MANIFEST,
            "src": {"external": "universal", "url": "u", "hash": "md5-xxx"},
        }}})
        with pytest.raises(SchemaError) as exc_info:
            parse_lockfile(raw)
        assert exc_info.value.path == "dependencies.packages/tool-x.src.hash"

    def test_unknown_src_variant(self) -> None:
        raw = json.dumps({"version": "V2", "dependencies": {"packages/tool-x": {
            "name": "tool-x", "version": "1", "manifest": MANIFEST,
            "src": {"external": "git", "url": "u", "hash": HASH},
        }}})
        with pytest.raises(SchemaError):
            parse_lockfile(raw)

    def test_v2_platform_specific(self) -> None:
        raw = json.dumps({"version": "V2", "dependencies": {"packages/tool-x": {
            "name": "tool-x", "version": "1.0.0", "manifest": MANIFEST,
            "src": {"external": "platform-specific", "x86_64-linux": {"url": "u", "hash": HASH}},
        }}})
        lockfile = parse_lockfile(raw)
        assert isinstance(lockfile, LockfileV2)
        dep = lockfile.dependencies["packages/tool-x"]
        assert dep.source == PerPlatform({Platform.X86_64_LINUX: Artifact("u", HASH)})
        assert dep.kind is PackageType.TOOL

    def test_corrupt_manifest_snapshot(self) -> None:
        raw = json.dumps({"version": "V2", "dependencies": {"packages/tool-x": {
            "name": "tool-x", "version": "1", "manifest": '{"type":"tool"}',
            "src": {"external": "universal", "url": "u", "hash": HASH},
        }}})
        with pytest.raises(SchemaError) as exc_info:
            parse_lockfile(raw)
        assert exc_info.value.path.startswith("dependencies.packages/tool-x.manifest")


class TestUpgrade:
    def test_dependency_named_like_variant_tag(self) -> None:
        raw = json.dumps({"version": "V1", "dependencies": {"universal": {
            "name": "universal", "install_path": "lib/universal", "version": "1",
            "manifest": MANIFEST_LIB,
            "systems": {"x86_64-linux": {"url": "u", "hash": "md5-x"}},
        }}})
        with pytest.raises(SchemaError) as exc_info:
            parse_lockfile(raw)
        assert exc_info.value.path == "dependencies.universal.systems.x86_64-linux.hash"

    def _v1(self) -> str:
        same = {"url": "https://dl/x", "hash": HASH}
        return json.dumps({"version": "V1", "dependencies": {
            "tool-x": {
                "name": "tool-x", "install_path": "packages/tool-x", "version": "1.0.0",
                "manifest": MANIFEST,
                "systems": {p.value: same for p in Platform},
            },
            "libfoo": {
                "name": "libfoo", "install_path": "lib/libfoo", "version": "2.0.0",
                "manifest": MANIFEST_LIB,
                "systems": {"x86_64-linux": {"url": "https://dl/l", "hash": HASH}},
            },
        }})

    def test_parse_v1(self) -> None:
        lockfile = parse_lockfile(self._v1())
        assert isinstance(lockfile, LockfileV1)
        assert lockfile.dependencies["libfoo"].install_path == "lib/libfoo"

    def test_upgrade(self) -> None:
        upgraded = upgrade_lockfile(parse_lockfile(self._v1()))
        assert isinstance(upgraded, LockfileV2)
        assert list(upgraded.dependencies) == ["libdeps/libfoo", "packages/tool-x"]
        tool = upgraded.dependencies["packages/tool-x"]
        assert tool.source == Universal(Artifact("https://dl/x", HASH))
        lib = upgraded.dependencies["libdeps/libfoo"]
        assert lib.source == PerPlatform({Platform.X86_64_LINUX: Artifact("https://dl/l", HASH)})
        assert lib.manifest == MANIFEST_LIB

    def test_upgrade_current_is_identity(self) -> None:
        store = LockfileStore()
        store.insert("packages/tool-x", _dep())
        lockfile = store.finalize()
        assert upgrade_lockfile(lockfile) is lockfile

    def test_load_always_current(self) -> None:
        assert load_lockfile(self._v1()).version == CURRENT_VERSION

    def test_corrupt_v1_manifest_names_file(self, tmp_path: Path) -> None:
        path = tmp_path / "old.lock"
        path.write_text(json.dumps({"version": "V1", "dependencies": {"tool-x": {
            "name": "tool-x", "install_path": "packages/tool-x", "version": "1.0.0",
            "manifest": '{"type":"tool"}',
            "systems": {"x86_64-linux": {"url": "https://dl/x", "hash": HASH}},
        }}}), encoding="utf-8")
        with pytest.raises(SchemaError) as exc_info:
            read_lockfile(path)
        assert exc_info.value.source == str(path)
        assert exc_info.value.path.startswith("dependencies.tool-x.manifest")
        assert str(exc_info.value).startswith(f"{path}: ")
