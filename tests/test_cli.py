from __future__ import annotations

import json
from pathlib import Path

import pytest

from wirebody.cli import main

DESIGN = {
    "types": [{"name": "Item", "attributes": [{"name": "a", "type": "string", "required": True}]}],
    "methods": [
        {"service": "store", "name": "add", "payload": "Item", "responses": [{"type": "Item"}]},
        {"service": "audit", "name": "log", "payload": "Item"},
    ],
}


def _write(tmp_path: Path, obj) -> Path:
    p = tmp_path / "design.json"
    p.write_text(json.dumps(obj), encoding="utf-8")
    return p


def test_gen_writes_one_module_per_service(tmp_path: Path, capsys):
    design = _write(tmp_path, DESIGN)
    out = tmp_path / "out"
    main(["gen", "--design", str(design), "--out", str(out), "--gen-package", "app.gen"])

    store = out / "store" / "client_types.py"
    audit = out / "audit" / "client_types.py"
    assert store.is_file() and audit.is_file()
    assert "from app.gen import store" in store.read_text(encoding="utf-8")
    assert capsys.readouterr().out.splitlines() == [str(store), str(audit)]


def test_check_does_not_write(tmp_path: Path, capsys):
    design = _write(tmp_path, DESIGN)
    main(["check", "--design", str(design)])
    assert capsys.readouterr().out.strip() == "ok: 2 method(s), 2 service(s)"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["design.json"]


def test_failed_generation_writes_nothing(tmp_path: Path):
    bad = dict(DESIGN)
    bad["types"] = [
        *DESIGN["types"],
        {"name": "Odd", "attributes": [{"name": "n", "type": "int", "format": "email"}]},
    ]
    bad["methods"] = [*DESIGN["methods"], {"service": "zzz", "name": "odd", "payload": "Odd"}]
    design = _write(tmp_path, bad)
    out = tmp_path / "out"
    with pytest.raises(SystemExit, match="format requires a string"):
        main(["gen", "--design", str(design), "--out", str(out)])
    assert not out.exists()


def test_load_errors_become_system_exit(tmp_path: Path):
    with pytest.raises(SystemExit, match="design file not found"):
        main(["check", "--design", str(tmp_path / "nope.json")])


def test_version_prints_something(capsys):
    main(["version"])
    assert capsys.readouterr().out.strip()
