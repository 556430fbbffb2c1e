"""Tests for kvminstall.orchestrate."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest

from kvminstall import orchestrate
from kvminstall.exceptions import ConfigurationError, SSHKeyError


class TestPrepareSettings:
    def test_resolves_distro_defaults(self, options):
        settings = orchestrate.prepare_settings(options)
        assert settings["os_variant"] == "ubuntu22.04"
        assert settings["user"] == "ubuntu"
        assert settings["distro_info"].image == "jammy-server-cloudimg-amd64.img"

    def test_explicit_values_win_over_distro(self, options):
        options.update(os_variant="generic", user="admin")
        settings = orchestrate.prepare_settings(options)
        assert settings["os_variant"] == "generic"
        assert settings["user"] == "admin"

    def test_does_not_mutate_options(self, options):
        orchestrate.prepare_settings(options)
        assert "distro_info" not in options

    def test_remove_name_becomes_vm_name(self, options):
        options.update(name=None, remove="old01")
        assert orchestrate.prepare_settings(options)["name"] == "old01"

    @pytest.mark.parametrize("name", ["/srv/precious", ".", "..", "web/01", "-web01", ".hidden", ""])
    def test_unsafe_vm_names_rejected(self, options, name):
        options.update(name=None, remove=name)
        with pytest.raises(ConfigurationError):
            orchestrate.prepare_settings(options)

    @pytest.mark.parametrize("name", ["web01", "db.lab-2", "node_3"])
    def test_vm_names_accepted(self, options, name):
        options["name"] = name
        assert orchestrate.prepare_settings(options)["name"] == name

    def test_remove_ignores_create_only_checks(self, options, tmp_path):
        options.update(
            name=None, remove="old01", disk_size=5, memory=0, mac="bogus", script=str(tmp_path / "gone.sh")
        )
        settings = orchestrate.prepare_settings(options)
        assert settings["name"] == "old01"
        assert settings["vm_dir"] == options["vm_dir"]

    def test_missing_name(self, options):
        options.update(name=None)
        with pytest.raises(ConfigurationError):
            orchestrate.prepare_settings(options)

    def test_disk_smaller_than_default_rejected(self, options):
        options["disk_size"] = 5
        with pytest.raises(ConfigurationError, match="at least 10G"):
            orchestrate.prepare_settings(options)

    def test_larger_disk_accepted(self, options):
        options["disk_size"] = "40"
        assert orchestrate.prepare_settings(options)["disk_size"] == 40

    @pytest.mark.parametrize("key", ["cpus", "memory"])
    def test_non_positive_sizing_rejected(self, options, key):
        options[key] = 0
        with pytest.raises(ConfigurationError, match=key):
            orchestrate.prepare_settings(options)

    def test_non_integer_sizing_rejected(self, options):
        options["memory"] = "lots"
        with pytest.raises(ConfigurationError, match="memory"):
            orchestrate.prepare_settings(options)

    def test_mac_is_lower_cased(self, options):
        options["mac"] = "52:54:00:AB:CD:EF"
        assert orchestrate.prepare_settings(options)["mac"] == "52:54:00:ab:cd:ef"

    @pytest.mark.parametrize("mac", ["52:54:00:ab:cd", "52-54-00-ab-cd-ef", "zz:54:00:ab:cd:ef"])
    def test_invalid_mac_rejected(self, options, mac):
        options["mac"] = mac
        with pytest.raises(ConfigurationError, match="mac"):
            orchestrate.prepare_settings(options)

    def test_expands_user_paths(self, options, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        options["vm_dir"] = "~/vms"
        assert orchestrate.prepare_settings(options)["vm_dir"] == str(tmp_path / "vms")

    def test_missing_script_rejected(self, options, tmp_path):
        options["script"] = str(tmp_path / "nope.sh")
        with pytest.raises(ConfigurationError, match="nope.sh"):
            orchestrate.prepare_settings(options)

    def test_unknown_distro_rejected(self, options):
        options["distro"] = "beos"
        with pytest.raises(ConfigurationError):
            orchestrate.prepare_settings(options)


class TestLoadConfig:
    def test_missing_optional_file(self, tmp_path):
        assert orchestrate.load_config(str(tmp_path / "none.yaml")) == {}

    def test_missing_required_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            orchestrate.load_config(str(tmp_path / "none.yaml"), required=True)

    def test_dashes_become_underscores(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("memory: 4096\ndisk-size: 20\ndistro: debian12\n")
        assert orchestrate.load_config(str(path)) == {"memory": 4096, "disk_size": 20, "distro": "debian12"}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert orchestrate.load_config(str(path)) == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- memory\n- cpus\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            orchestrate.load_config(str(path))

    def test_invalid_yaml_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("memory: [4096\n")
        with pytest.raises(ConfigurationError):
            orchestrate.load_config(str(path))


class TestConfigPath:
    def test_explicit_path_wins(self, monkeypatch):
        monkeypatch.setenv(orchestrate.CONFIG_ENVVAR, "/from/env.yaml")
        assert orchestrate.config_path("/explicit.yaml") == "/explicit.yaml"

    def test_environment_variable(self, monkeypatch):
        monkeypatch.setenv(orchestrate.CONFIG_ENVVAR, "/from/env.yaml")
        assert orchestrate.config_path() == "/from/env.yaml"

    def test_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv(orchestrate.CONFIG_ENVVAR, raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert orchestrate.config_path() == str(tmp_path / ".config" / "kvm-install-vm" / "config.yaml")


def test_setup_logging_levels():
    logger = orchestrate.setup_logging(verbose=True)
    assert logger is logging.getLogger("kvminstall")
    assert logger.level == logging.DEBUG
    handlers = len(logger.handlers)
    logger = orchestrate.setup_logging()
    assert logger.level == logging.INFO
    assert len(logger.handlers) == handlers


class TestCreate:
    def test_fetches_image_and_creates_vm(self, settings):
        vm = MagicMock()
        with patch("kvminstall.orchestrate.image.fetch", return_value="/images/base.img") as fetch, patch(
            "kvminstall.orchestrate.VirtualMachine", return_value=vm
        ):
            assert orchestrate.create(settings) is vm
        fetch.assert_called_once_with(settings)
        vm.create.assert_called_once()
        base, key = vm.create.call_args[0]
        assert base == "/images/base.img"
        assert key.startswith("ssh-ed25519 ")

    def test_missing_key_stops_before_download(self, settings, tmp_path):
        settings["ssh_key"] = str(tmp_path / "missing.pub")
        with patch("kvminstall.orchestrate.image.fetch") as fetch:
            with pytest.raises(SSHKeyError):
                orchestrate.create(settings)
        fetch.assert_not_called()


def test_delete_tears_down_vm(settings):
    vm = MagicMock()
    with patch("kvminstall.orchestrate.VirtualMachine", return_value=vm) as cls:
        orchestrate.delete(settings)
    cls.assert_called_once_with(settings)
    vm.delete.assert_called_once_with()
