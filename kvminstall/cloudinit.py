'''
Render the NoCloud user-data/meta-data documents and pack them into the seed
iso attached to the vm.
'''
import os
import logging
from io import BytesIO
import pycdlib
import yaml
from kvminstall.exceptions import SSHKeyError

LOGGER = logging.getLogger(__name__)
CUSTOM_SCRIPT = '/root/custom-script.sh'


def read_ssh_key(path):
    '''
    Return the public key stored at path.
    :param path: path to an openssh public key
    :type path: str
    '''
    try:
        with open(os.path.expanduser(path), 'r') as keyfd:
            key = keyfd.read().strip()
    except IOError as err:
        raise SSHKeyError(f"Unable to read ssh public key {path}. {err}") from err
    if not key:
        raise SSHKeyError(f"SSH public key {path} is empty.")
    return key


def user_data(settings, key):
    '''
    Build the cloud-config dictionary for the vm.
    '''
    distro = settings['distro_info']
    name = settings['name']
    runcmd = []
    config = {
        'preserve_hostname': False,
        'hostname': name,
        'fqdn': f"{name}.{settings['domain']}",
        'users': [
            'default',
            {'name': settings['user'],
             'groups': [distro.group],
             'shell': '/bin/bash',
             'sudo': 'ALL=(ALL) NOPASSWD:ALL',
             'ssh_authorized_keys': [key]},
        ],
        'timezone': settings['timezone'],
        'ssh_pwauth': False,
    }
    if settings.get('script'):
        with open(settings['script'], 'r') as scriptfd:
            config['write_files'] = [{'path': CUSTOM_SCRIPT,
                                      'permissions': '0755',
                                      'content': scriptfd.read()}]
        runcmd.append(CUSTOM_SCRIPT)
    runcmd.append(distro.cleanup)
    config['runcmd'] = runcmd
    return config


def meta_data(settings):
    return {'instance-id': settings['name'],
            'local-hostname': settings['name']}


def render(userdata, metadata):
    '''
    Serialize both documents, returning (user-data, meta-data) text.
    '''
    userdoc = '#cloud-config\n' + yaml.safe_dump(userdata, default_flow_style=False,
                                                  sort_keys=False)
    metadoc = yaml.safe_dump(metadata, default_flow_style=False, sort_keys=False)
    return userdoc, metadoc


def create_seed_iso(path, userdoc, metadoc):
    '''
    Write a NoCloud seed iso (volume id "cidata") holding both documents.
    '''
    iso = pycdlib.PyCdlib()
    iso.new(interchange_level=3,
            joliet=3,
            sys_ident='LINUX',
            vol_ident='cidata')
    for content, iso_path, joliet_path in ((userdoc, '/USERDATA.;1', '/user-data'),
                                           (metadoc, '/METADATA.;1', '/meta-data')):
        data = content.encode('utf-8')
        iso.add_fp(BytesIO(data), len(data), iso_path, joliet_path=joliet_path)
    try:
        iso.write(path)
        LOGGER.info(f"Created nocloud iso at {path}")
    except IOError:
        LOGGER.critical(f"Failure creating the nocloud iso at {path}")
        raise
    finally:
        iso.close()
