import os
import re
import json
import time
import shutil
import logging
import subprocess
import click
import yaml
from kvminstall import cloudinit
from kvminstall.exceptions import DomainError

LOGGER = logging.getLogger(__name__)
DEFAULT_DISK_SIZE = 10
LEASES_DIR = '/var/lib/libvirt/dnsmasq'
LEASE_POLL_INTERVAL = 5
ROOT_PARTITION = '/dev/sda1'
MAC_PATTERN = re.compile(r'([0-9a-f]{2}(?::[0-9a-f]{2}){5})', re.IGNORECASE)


class VirtualMachine:
    '''
    A libvirt domain built from a cloud image, with methods to
    * copy and grow its qcow2 disk,
    * write its NoCloud seed iso,
    * define it through a storage pool and virt-install,
    * find its address in the dnsmasq leases,
    * tear all of it down again.
    '''
    def __init__(self, settings):
        self.settings = settings
        self.name = settings['name']
        self.directory = os.path.join(settings['vm_dir'], self.name)
        self.disk = os.path.join(self.directory, f"{self.name}.qcow2")
        self.seed = os.path.join(self.directory, f"{self.name}-cidata.iso")
        self.ipaddr = None

    def __repr__(self):
        return yaml.safe_dump({'name': self.name, 'directory': self.directory,
                               'disk': self.disk, 'seed': self.seed},
                              default_flow_style=False)

    def create(self, image, key):
        '''
        Provision the virtual machine from the base image at image.
        :param image: path of the cached cloud image
        :type image: str
        :param key: public key authorized for the login user
        :type key: str
        '''
        if self.exists():
            self.overwrite()

        try:
            if not os.path.isdir(self.directory):
                os.makedirs(self.directory)
            self.create_disk(image)
            # Seed iso and pool must exist before virt-install imports the disk
            self.create_iso(key)
        except OSError as err:
            LOGGER.critical(f"{self.name} - Failure preparing files in "
                            f"{self.directory}. {err}")
            raise DomainError(f"{self.name} - Unable to write vm files: "
                              f"{err}") from err
        self.create_pool()
        self.install()
        if self.settings.get('autostart'):
            self.autostart()
        self.ipaddr = self.wait_for_ip(self.mac_address())
        if self.ipaddr:
            LOGGER.info(f"{self.name} - SSH to {self.name}: "
                        f"'ssh {self.settings['user']}@{self.ipaddr}' or "
                        f"'ssh {self.settings['user']}@{self.name}'")

    def exists(self):
        cmd = ['virsh', 'dominfo', self.name]
        try:
            return subprocess.run(cmd, stdout=subprocess.DEVNULL,
                                  stderr=subprocess.DEVNULL).returncode == 0
        except OSError as err:
            LOGGER.critical(f"{self.name} - Unable to run virsh. {err}")
            raise DomainError(f"{self.name} - Unable to run virsh: {err}") from err

    def overwrite(self):
        '''
        Remove an existing domain of the same name, asking first unless
        assume_yes is set.
        '''
        LOGGER.warning(f"{self.name} - Domain already exists.")
        if not self.settings.get('assume_yes'):
            if not click.confirm(f"Delete existing domain {self.name} and "
                                 f"create it again?", default=False):
                raise DomainError(f"{self.name} - Domain already exists. "
                                  f"Not overwriting.")
        self.delete()

    def delete(self):
        '''
        Delete the virtual machine, its pool and its files. libvirt errors
        are logged and ignored.
        '''
        if self.exists():
            self.cleanup_libvirt()
        else:
            LOGGER.warning(f"{self.name} - Domain does not exist. "
                           f"Libvirt needs no cleanup.")
        self.cleanup_pool()

        if os.path.isdir(self.directory):
            try:
                shutil.rmtree(self.directory)
            except OSError as err:
                LOGGER.critical(f"{self.name} - Failure removing "
                                f"{self.directory}. {err}")
                raise DomainError(f"{self.name} - Unable to remove "
                                  f"{self.directory}: {err}") from err
            LOGGER.info(f"{self.name} - Removed {self.directory}")
        else:
            LOGGER.info(f"{self.name} - {self.directory} does not exist.")
        LOGGER.info(f"{self.name} - Successfully deleted.")

    def _run(self, cmd, failure):
        '''
        Run cmd, raising DomainError with its output when it fails.
        :param cmd: argument list
        :type cmd: list
        :param failure: what to log when the command fails
        :type failure: str
        '''
        LOGGER.debug(f"{self.name} - Running {' '.join(cmd)}")
        try:
            return subprocess.check_output(cmd, stderr=subprocess.STDOUT,
                                           universal_newlines=True)
        except (subprocess.CalledProcessError, OSError) as err:
            output = getattr(err, 'output', None) or str(err)
            LOGGER.critical(f"{self.name} - {failure}. Cmd output: "
                            f"{output.rstrip()}")
            raise DomainError(f"{self.name} - {failure}.") from err

    def create_disk(self, image):
        '''
        Copy the base image into the vm directory and grow it when a disk
        larger than the image default was requested.
        '''
        shutil.copyfile(image, self.disk)
        LOGGER.info(f"{self.name} - Copied {image} to {self.disk}")

        size = int(self.settings['disk_size'])
        if size <= DEFAULT_DISK_SIZE:
            return

        resized = self.disk + '.new'
        self._run(['qemu-img', 'create', '-f', 'qcow2', '-o',
                   'preallocation=metadata', resized, f"{size}G"],
                  f"Failure creating {size}G qcow2 disk at {resized}")
        self._run(['virt-resize', '--quiet', '--expand', ROOT_PARTITION,
                   self.disk, resized],
                  f"Failure expanding {ROOT_PARTITION} into {resized}")
        os.replace(resized, self.disk)
        LOGGER.info(f"{self.name} - Resized {self.disk} to {size}G")

    def create_iso(self, key):
        '''
        create a cloud-init iso from the user-data/meta-data documents.
        '''
        userdoc, metadoc = cloudinit.render(cloudinit.user_data(self.settings, key),
                                            cloudinit.meta_data(self.settings))
        LOGGER.debug(f"{self.name} - user-data:\n{userdoc}")
        cloudinit.create_seed_iso(self.seed, userdoc, metadoc)

    def create_pool(self):
        self._run(['virsh', 'pool-create-as', '--name', self.name,
                   '--type', 'dir', '--target', self.directory],
                  'Failure creating storage pool')
        LOGGER.info(f"{self.name} - Created storage pool at {self.directory}")

    def install_command(self):
        '''
        The virt-install invocation importing the disk as a new domain.
        '''
        settings = self.settings
        network = f"bridge={settings['bridge']},model=virtio"
        if settings.get('mac'):
            network += f",mac={settings['mac']}"
        return ['virt-install', '--import',
                '--name', self.name,
                '--memory', str(settings['memory']),
                '--vcpus', str(settings['cpus']),
                '--cpu', settings['cpu_model'],
                '--disk', f"{self.disk},format=qcow2,bus=virtio",
                '--disk', f"{self.seed},device=cdrom",
                '--network', network,
                '--os-variant', settings['os_variant'],
                '--graphics', settings['graphics'],
                '--noautoconsole']

    def install(self):
        self._run(self.install_command(), 'Failure installing virtual machine')
        LOGGER.info(f"{self.name} - Installed and started.")

    def autostart(self):
        self._run(['virsh', 'autostart', self.name],
                  'Failure enabling autostart')
        LOGGER.info(f"{self.name} - Enabled autostart.")

    def mac_address(self):
        '''
        MAC address of the domain's first interface.
        '''
        if self.settings.get('mac'):
            return self.settings['mac']
        output = self._run(['virsh', 'domiflist', self.name],
                           'Failure listing interfaces')
        match = MAC_PATTERN.search(output)
        if not match:
            raise DomainError(f"{self.name} - No mac address found in "
                              f"domain's interfaces.")
        return match.group(1).lower()

    def lease_file(self):
        return os.path.join(LEASES_DIR, f"{self.settings['bridge']}.status")

    def find_lease(self, mac):
        '''
        Return the ip address dnsmasq leased to mac, if any.
        '''
        with open(self.lease_file(), 'r') as leasefd:
            content = leasefd.read().strip()
        for lease in json.loads(content) if content else []:
            if lease.get('mac-address', '').lower() == mac:
                return lease.get('ip-address')
        return None

    def wait_for_ip(self, mac, interval=LEASE_POLL_INTERVAL, attempts=None):
        '''
        Poll the bridge's lease file until mac shows up in it.
        :param attempts: stop after this many polls, never when None
        :type attempts: int
        '''
        if not os.path.isfile(self.lease_file()):
            LOGGER.warning(f"{self.name} - No lease file {self.lease_file()}. "
                           f"Bridge {self.settings['bridge']} is not managed by "
                           f"libvirt, skipping ip discovery.")
            return None

        LOGGER.info(f"{self.name} - Waiting for a dhcp lease for {mac} ...")
        polled = 0
        while attempts is None or polled < attempts:
            ipaddr = self.find_lease(mac)
            if ipaddr:
                LOGGER.info(f"{self.name} - Got ip address {ipaddr}")
                return ipaddr
            polled += 1
            time.sleep(interval)
        LOGGER.warning(f"{self.name} - No lease for {mac} after {polled} polls.")
        return None

    def cleanup_libvirt(self):
        '''
        stop and cleanup virtual machine config from libvirt.
        '''
        subprocess.call(['virsh', 'destroy', self.name],
                        stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        try:
            subprocess.check_output(['virsh', 'undefine', self.name],
                                    stderr=subprocess.STDOUT,
                                    universal_newlines=True)
            LOGGER.info(f"{self.name} - Stopped and undefined in libvirt")
        except subprocess.CalledProcessError as err:
            LOGGER.critical(f"{self.name} - Failure undefining virtual machine "
                            f"in libvirt. Cmd output: {err.output.rstrip()}")

    def cleanup_pool(self):
        for action in ('pool-destroy', 'pool-undefine'):
            cmd = ['virsh', action, self.name]
            returncode = subprocess.call(cmd, stdout=subprocess.PIPE,
                                         stderr=subprocess.PIPE)
            if returncode:
                LOGGER.debug(f"{self.name} - '{' '.join(cmd)}' returned "
                             f"{returncode}")
