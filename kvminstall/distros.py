'''
Supported distributions and the cloud images they boot from.
'''
from collections import namedtuple
import click
from kvminstall.exceptions import ConfigurationError

# Admin group of the login user and the command removing cloud-init once the
# guest has booted, per distribution family.
FAMILIES = {
    'rhel': {'group': 'wheel', 'cleanup': 'yum -y remove cloud-init'},
    'debian': {'group': 'sudo', 'cleanup': 'apt-get -y remove cloud-init'},
    'suse': {'group': 'wheel',
             'cleanup': 'zypper --non-interactive remove cloud-init'},
}


class Distro(namedtuple('Distro', 'image os_variant url user family')):
    '''
    A cloud image: its file name, the virt-install os variant, the directory
    it is published in, the default login user and the distro family.
    '''
    __slots__ = ()

    @property
    def download_url(self):
        return f"{self.url.rstrip('/')}/{self.image}"

    @property
    def group(self):
        return FAMILIES[self.family]['group']

    @property
    def cleanup(self):
        return FAMILIES[self.family]['cleanup']


DISTROS = {
    'almalinux8': Distro('AlmaLinux-8-GenericCloud-latest.x86_64.qcow2',
                         'almalinux8',
                         'https://repo.almalinux.org/almalinux/8/cloud/x86_64/images',
                         'almalinux', 'rhel'),
    'almalinux9': Distro('AlmaLinux-9-GenericCloud-latest.x86_64.qcow2',
                         'almalinux9',
                         'https://repo.almalinux.org/almalinux/9/cloud/x86_64/images',
                         'almalinux', 'rhel'),
    'centos7': Distro('CentOS-7-x86_64-GenericCloud.qcow2', 'centos7.0',
                      'https://cloud.centos.org/centos/7/images',
                      'centos', 'rhel'),
    'centos8': Distro('CentOS-Stream-GenericCloud-8-latest.x86_64.qcow2',
                      'centos-stream8',
                      'https://cloud.centos.org/centos/8-stream/x86_64/images',
                      'centos', 'rhel'),
    'centos9': Distro('CentOS-Stream-GenericCloud-9-latest.x86_64.qcow2',
                      'centos-stream9',
                      'https://cloud.centos.org/centos/9-stream/x86_64/images',
                      'cloud-user', 'rhel'),
    'debian11': Distro('debian-11-generic-amd64.qcow2', 'debian11',
                       'https://cloud.debian.org/images/cloud/bullseye/latest',
                       'debian', 'debian'),
    'debian12': Distro('debian-12-generic-amd64.qcow2', 'debian12',
                       'https://cloud.debian.org/images/cloud/bookworm/latest',
                       'debian', 'debian'),
    'fedora39': Distro('Fedora-Cloud-Base-39-1.5.x86_64.qcow2', 'fedora39',
                       'https://download.fedoraproject.org/pub/fedora/linux/'
                       'releases/39/Cloud/x86_64/images',
                       'fedora', 'rhel'),
    'fedora40': Distro('Fedora-Cloud-Base-Generic.x86_64-40-1.14.qcow2',
                       'fedora40',
                       'https://download.fedoraproject.org/pub/fedora/linux/'
                       'releases/40/Cloud/x86_64/images',
                       'fedora', 'rhel'),
    'opensuse15': Distro('openSUSE-Leap-15.5-Minimal-VM.x86_64-Cloud.qcow2',
                         'opensuse15.5',
                         'https://download.opensuse.org/distribution/leap/15.5/appliances',
                         'opensuse', 'suse'),
    'rocky8': Distro('Rocky-8-GenericCloud.latest.x86_64.qcow2', 'rocky8',
                     'https://download.rockylinux.org/pub/rocky/8/images/x86_64',
                     'rocky', 'rhel'),
    'rocky9': Distro('Rocky-9-GenericCloud.latest.x86_64.qcow2', 'rocky9',
                     'https://download.rockylinux.org/pub/rocky/9/images/x86_64',
                     'rocky', 'rhel'),
    'ubuntu2004': Distro('focal-server-cloudimg-amd64.img', 'ubuntu20.04',
                         'https://cloud-images.ubuntu.com/focal/current',
                         'ubuntu', 'debian'),
    'ubuntu2204': Distro('jammy-server-cloudimg-amd64.img', 'ubuntu22.04',
                         'https://cloud-images.ubuntu.com/jammy/current',
                         'ubuntu', 'debian'),
    'ubuntu2404': Distro('noble-server-cloudimg-amd64.img', 'ubuntu24.04',
                         'https://cloud-images.ubuntu.com/noble/current',
                         'ubuntu', 'debian'),
}

DEFAULT_DISTRO = 'centos9'


def lookup(key):
    '''
    Return the Distro registered under key.
    :param key: distribution name, e.g. ubuntu2204
    :type key: str
    '''
    try:
        return DISTROS[key]
    except KeyError:
        raise ConfigurationError(f"Unsupported distribution '{key}'. Choose "
                                 f"one of: {', '.join(sorted(DISTROS))}")


def print_table():
    '''
    Print the supported distributions, one per line.
    '''
    width = max(len(key) for key in DISTROS)
    for key in sorted(DISTROS):
        distro = DISTROS[key]
        default = ' (default)' if key == DEFAULT_DISTRO else ''
        click.echo(f"  {key:<{width}}  {distro.os_variant:<15} "
                   f"user={distro.user}{default}")
