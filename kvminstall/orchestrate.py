import os
import re
import sys
import logging
import yaml
from kvminstall import cloudinit, distros, image
from kvminstall.exceptions import ConfigurationError
from kvminstall.virtualmachine import VirtualMachine, DEFAULT_DISK_SIZE

LOGGER = logging.getLogger(__name__)
DEFAULT_CONFIG = os.path.join('~', '.config', 'kvm-install-vm', 'config.yaml')
CONFIG_ENVVAR = 'KVM_INSTALL_VM_CONFIG'
MAC_ADDRESS = re.compile(r'^[0-9a-f]{2}(:[0-9a-f]{2}){5}$')
VM_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
PATH_SETTINGS = ('image', 'ssh_key', 'image_dir', 'vm_dir', 'script')


def setup_logging(verbose=False):
    '''
    Log to stdout through the package logger.
    '''
    logger = logging.getLogger('kvminstall')
    logformat = logging.Formatter('%(asctime)s - %(funcName)s - '
                                  '%(levelname)s - %(message)s')
    if not logger.handlers:
        stdouthandler = logging.StreamHandler(sys.stdout)
        stdouthandler.setFormatter(logformat)
        logger.addHandler(stdouthandler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


def config_path(path=None):
    return os.path.expanduser(path or os.environ.get(CONFIG_ENVVAR) or DEFAULT_CONFIG)


def load_config(path, required=False):
    '''
    Read the yaml file of default option values. Keys are option names,
    e.g. "memory: 2048" or "distro: ubuntu2204".
    :param required: raise when the file does not exist
    :type required: bool
    '''
    if not os.path.isfile(path):
        if required:
            raise ConfigurationError(f"Config file {path} does not exist.")
        return {}
    try:
        with open(path, 'r') as reader:
            config = yaml.safe_load(reader)
    except (IOError, yaml.YAMLError) as err:
        LOGGER.critical(f"Exception reading/parsing configuration file "
                        f"{path}. {err}")
        raise ConfigurationError(f"Invalid config file {path}: {err}") from err
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {path} must hold a mapping of "
                                 f"option names to values.")
    return {key.replace('-', '_'): value for key, value in config.items()}


def prepare_settings(options):
    '''
    Validate the merged options and resolve the distribution specifics,
    returning the settings dictionary VirtualMachine is built from.
    '''
    settings = dict(options)
    settings['name'] = settings.get('name') or settings.get('remove')
    if not settings['name']:
        raise ConfigurationError('A vm name is required.')
    if not VM_NAME.match(settings['name']):
        raise ConfigurationError(f"Invalid vm name {settings['name']!r}. Use letters, "
                                 f"digits, '.', '_' and '-', starting with a "
                                 f"letter or digit.")

    for key in PATH_SETTINGS:
        if settings.get(key):
            settings[key] = os.path.abspath(os.path.expanduser(settings[key]))

    # Removal only needs the name and directories.
    if not settings.get('remove'):
        _validate_create(settings)

    distro = distros.lookup(settings['distro'])
    settings['distro_info'] = distro
    settings['os_variant'] = settings.get('os_variant') or distro.os_variant
    settings['user'] = settings.get('user') or distro.user
    return settings


def _validate_create(settings):
    '''
    Check sizing, mac and script of a vm about to be created.
    '''
    for key in ('cpus', 'memory', 'disk_size'):
        try:
            settings[key] = int(settings[key])
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be an integer, got "
                                     f"{settings[key]!r}.")
        if settings[key] < 1:
            raise ConfigurationError(f"{key} must be positive.")
    if settings['disk_size'] < DEFAULT_DISK_SIZE:
        raise ConfigurationError(f"Disk size must be at least "
                                 f"{DEFAULT_DISK_SIZE}G, got "
                                 f"{settings['disk_size']}G.")

    if settings.get('mac'):
        settings['mac'] = settings['mac'].lower()
        if not MAC_ADDRESS.match(settings['mac']):
            raise ConfigurationError(f"Invalid mac address {settings['mac']}.")

    if settings.get('script') and not os.path.isfile(settings['script']):
        raise ConfigurationError(f"Script {settings['script']} does not exist.")


def create(settings):
    '''
    Fetch the image, build the seed iso and install the vm.
    '''
    key = cloudinit.read_ssh_key(settings['ssh_key'])
    base = image.fetch(settings)
    vm = VirtualMachine(settings)
    LOGGER.debug(f"{vm.name} - {vm!r}")
    vm.create(base, key)
    LOGGER.info(f"{vm.name} - Operation create successful.")
    return vm


def delete(settings):
    vm = VirtualMachine(settings)
    vm.delete()
    return vm
