#!/usr/bin/env python3
"""
Tests for the project and plugin stores
"""

import json

import pytest

from api_builder.stores import PluginStore, ProjectStore


class TestProjectStore:

    def test_seeds_demo_project(self, tmp_path):
        store = ProjectStore(tmp_path / "projects.json")

        projects = store.list()
        assert [p["id"] for p in projects] == ["demo-1"]
        assert projects[0]["name"] == "E-commerce API"
        assert (tmp_path / "projects.json").exists()

    def test_create_persists(self, tmp_path):
        path = tmp_path / "projects.json"
        store = ProjectStore(path)

        project = store.create(name="Weather API", description="Forecasts")

        assert project["id"].isdigit()
        assert project["endpoints"] == []
        reloaded = ProjectStore(path)
        assert reloaded.get(project["id"])["name"] == "Weather API"

    def test_create_with_explicit_id(self, tmp_path):
        store = ProjectStore(tmp_path / "projects.json")

        project = store.create(name="Fleet", project_id="fleet-1", settings={"generated": True})

        assert store.get("fleet-1") is project
        assert project["settings"] == {"generated": True}

    def test_create_requires_name(self, tmp_path):
        store = ProjectStore(tmp_path / "projects.json")

        with pytest.raises(ValueError):
            store.create(name="  ")

    def test_delete(self, tmp_path):
        store = ProjectStore(tmp_path / "projects.json")

        assert store.delete("demo-1") is True
        assert store.delete("demo-1") is False
        with open(tmp_path / "projects.json") as f:
            assert json.load(f) == []

    def test_corrupt_file_starts_from_demo(self, tmp_path):
        path = tmp_path / "projects.json"
        path.write_text("not json")

        assert [p["id"] for p in ProjectStore(path).list()] == ["demo-1"]


class TestPluginStore:

    def test_defaults(self, tmp_path):
        store = PluginStore(tmp_path / "plugins.json")

        enabled = {p["id"] for p in store.list() if p["enabled"]}
        assert len(store) == 18
        assert enabled == {"auth", "cors", "custom-dataset", "google-sheets"}

    def test_enable_and_disable_persist(self, tmp_path):
        path = tmp_path / "plugins.json"
        store = PluginStore(path)

        assert store.enable("slack")["enabled"] is True
        assert store.disable("cors")["enabled"] is False

        reloaded = PluginStore(path)
        assert reloaded.get("slack")["enabled"] is True
        assert reloaded.get("cors")["enabled"] is False

    def test_unknown_plugin(self, tmp_path):
        store = PluginStore(tmp_path / "plugins.json")

        assert store.enable("nope") is None
        assert store.disable("nope") is None

    def test_is_disabled(self, tmp_path):
        store = PluginStore(tmp_path / "plugins.json")

        assert store.is_disabled("hubspot") is True
        assert store.is_disabled("google-sheets") is False
        # providers without a plugin entry are never gated
        assert store.is_disabled("sentry") is False
