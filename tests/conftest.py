"""Shared fixtures: settings for a vm rooted in a temporary directory."""

from __future__ import annotations

import logging

import pytest

from kvminstall import orchestrate


@pytest.fixture
def ssh_key(tmp_path):
    key = tmp_path / "id_rsa.pub"
    key.write_text("ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIExample user@host\n")
    return key


@pytest.fixture
def options(tmp_path, ssh_key):
    """Raw option values as the cli hands them to prepare_settings."""
    return {
        "name": "web01",
        "remove": None,
        "distro": "ubuntu2204",
        "cpus": 2,
        "memory": 2048,
        "disk_size": 10,
        "bridge": "virbr0",
        "mac": None,
        "image": None,
        "os_variant": None,
        "user": None,
        "ssh_key": str(ssh_key),
        "timezone": "Europe/Berlin",
        "domain": "lab.local",
        "image_dir": str(tmp_path / "images"),
        "vm_dir": str(tmp_path / "vms"),
        "cpu_model": "host",
        "graphics": "spice",
        "autostart": False,
        "script": None,
        "assume_yes": False,
        "list_distros": False,
        "verbose": False,
    }


@pytest.fixture
def settings(options):
    return orchestrate.prepare_settings(options)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers and levels installed by setup_logging."""
    logger = logging.getLogger("kvminstall")
    handlers, level = logger.handlers[:], logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
