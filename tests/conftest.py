from __future__ import annotations

import importlib.util
import sys
import types
from dataclasses import field, make_dataclass
from pathlib import Path
from typing import Any

import pytest

from wirebody.config import GenOptions
from wirebody.design import Design
from wirebody.generate import generate
from wirebody.naming import identifier, snake


@pytest.fixture(autouse=True)
def _clear_wirebody_env(monkeypatch):
    # Generation options read the environment; keep tests independent of the host.
    for name in ("WIREBODY_GEN_PACKAGE", "WIREBODY_RUNTIME_MODULE", "WIREBODY_FILE_NAME"):
        monkeypatch.delenv(name, raising=False)


def _default_field(attr) -> Any:
    if isinstance(attr.default, (list, dict)):
        value = attr.default
        return field(default_factory=lambda: type(value)(value))
    return field(default=attr.default)


def _domain_classes(design: Design) -> tuple[dict[str, type], dict[str, type]]:
    """Stand-ins for the service and view types an upstream generator would produce."""
    domain: dict[str, type] = {}
    views: dict[str, type] = {}
    for ut in design.graph:
        if not ut.is_object:
            continue
        specs = []
        view_specs = []
        for a in ut.attributes:
            name = identifier(a.name)
            if a.has_default:
                specs.append((name, Any, _default_field(a)))
            elif a.required:
                specs.append((name, Any))
            else:
                specs.append((name, Any, field(default=None)))
            view_specs.append((name, Any, field(default=None)))
        domain[ut.name] = make_dataclass(ut.name, specs, kw_only=True)
        views[f"{ut.name}View"] = make_dataclass(f"{ut.name}View", view_specs, kw_only=True)
    return domain, views


def install_domain(design: Design, monkeypatch, *, gen_package: str = "gen") -> None:
    pkg = types.ModuleType(gen_package)
    pkg.__path__ = []  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, gen_package, pkg)
    domain, views = _domain_classes(design)
    for service in design.services():
        module = snake(service)
        mod = types.ModuleType(f"{gen_package}.{module}")
        mod.__path__ = []  # type: ignore[attr-defined]
        vmod = types.ModuleType(f"{gen_package}.{module}.views")
        for name, cls in domain.items():
            setattr(mod, name, cls)
        for name, cls in views.items():
            setattr(vmod, name, cls)
        mod.views = vmod  # type: ignore[attr-defined]
        setattr(pkg, module, mod)
        monkeypatch.setitem(sys.modules, mod.__name__, mod)
        monkeypatch.setitem(sys.modules, vmod.__name__, vmod)


def import_from_path(path: Path, name: str, monkeypatch):
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec is not None
    mod = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    monkeypatch.setitem(sys.modules, spec.name, mod)
    spec.loader.exec_module(mod)  # type: ignore[attr-defined]
    return mod


@pytest.fixture
def build(tmp_path: Path, monkeypatch):
    """Generate a design, write the files and import them against stand-in domain modules.

    Returns (design, files, modules by service name).
    """

    def _build(manifest: dict[str, Any], opts: GenOptions | None = None):
        design = Design.from_manifest(manifest)
        files = generate(design, opts or GenOptions())
        install_domain(design, monkeypatch, gen_package=(opts or GenOptions()).gen_package)
        mods = {}
        for f in files:
            path = tmp_path / f.path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f.render(), encoding="utf-8")
            mods[f.service] = import_from_path(path, f"wirebody_generated_{snake(f.service)}", monkeypatch)
        return design, files, mods

    return _build


@pytest.fixture
def domain(monkeypatch):
    """Return the stand-in domain modules of a service after `build` installed them."""

    def _domain(service: str, gen_package: str = "gen"):
        mod = sys.modules[f"{gen_package}.{snake(service)}"]
        return mod, mod.views

    return _domain
