'''The cli module '''
import logging
import click
from kvminstall import __version__, distros, orchestrate
from kvminstall.exceptions import ConfigurationError, KvmInstallError
from kvminstall.virtualmachine import DEFAULT_DISK_SIZE

LOGGER = logging.getLogger(__name__)


def _load_defaults(ctx, param, value):
    '''
    Populate the option defaults from the yaml config file.
    '''
    path = orchestrate.config_path(value)
    try:
        ctx.default_map = orchestrate.load_config(path, required=value is not None)
    except ConfigurationError as err:
        raise click.BadParameter(str(err), ctx=ctx, param=param)
    return path


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config', help="YAML file of default option values.",
              type=click.Path(dir_okay=False), callback=_load_defaults,
              is_eager=True, expose_value=False)
@click.option('--name', '-n', help="Create a virtual machine with this name.")
@click.option('--remove', '-r', help="Remove the virtual machine with this name.")
@click.option('--distro', '-t', help="Distribution to install.",
              type=click.Choice(sorted(distros.DISTROS)),
              default=distros.DEFAULT_DISTRO, show_default=True)
@click.option('--cpus', '-c', help="Number of vcpus.", type=int, default=1,
              show_default=True)
@click.option('--memory', '-m', help="Memory in MiB.", type=int, default=1024,
              show_default=True)
@click.option('--disk-size', '-d', help="Disk size in GB, at least the default.",
              type=int, default=DEFAULT_DISK_SIZE, show_default=True)
@click.option('--bridge', '-b', help="Bridge the vm's interface is attached to.",
              default='virbr0', show_default=True)
@click.option('--mac', '-M', help="MAC address of the vm's interface.")
@click.option('--image', '-i', help="Custom base image instead of the distro's.")
@click.option('--os-variant', '-O', help="virt-install os variant. "
              "Defaults to the distro's.")
@click.option('--user', '-u', help="Login user. Defaults to the distro's.")
@click.option('--ssh-key', '-k', help="Public key authorized for the login user.",
              default='~/.ssh/id_rsa.pub', show_default=True)
@click.option('--timezone', '-T', help="Timezone of the vm.",
              default='US/Eastern', show_default=True)
@click.option('--domain', '-D', help="DNS domain of the vm.",
              default='example.local', show_default=True)
@click.option('--image-dir', '-l', help="Directory cloud images are cached in.",
              default='~/virt/images', show_default=True)
@click.option('--vm-dir', '-L', help="Directory vm disks are stored in.",
              default='~/virt/vms', show_default=True)
@click.option('--cpu-model', '-f', help="CPU model.", default='host',
              show_default=True)
@click.option('--graphics', '-g', help="Graphics type.", default='spice',
              show_default=True)
@click.option('--autostart', '-a', help="Start the vm when the host boots.",
              is_flag=True, default=False)
@click.option('--script', '-s', help="Shell script run on the vm's first boot.")
@click.option('--assume-yes', '-y', help="Overwrite an existing vm without asking.",
              is_flag=True, default=False)
@click.option('--list-distros', help="List supported distributions and exit.",
              is_flag=True, default=False)
@click.option('--verbose', '-v', help="Debug logging.", is_flag=True,
              default=False)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx, name, remove, list_distros, verbose, **_):
    '''
    Create (-n NAME) or remove (-r NAME) KVM virtual machines built from
    cloud images and cloud-init.
    '''
    orchestrate.setup_logging(verbose)
    if list_distros:
        distros.print_table()
        return
    if name and remove:
        raise click.UsageError("--name and --remove are mutually exclusive.")
    if not name and not remove:
        raise click.UsageError("One of --name or --remove is required.")

    try:
        settings = orchestrate.prepare_settings(ctx.params)
        if remove:
            orchestrate.delete(settings)
        else:
            orchestrate.create(settings)
    except KvmInstallError as err:
        LOGGER.critical(str(err))
        ctx.exit(err.exit_code)
