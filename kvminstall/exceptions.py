'''Exceptions raised by kvminstall. Each carries the exit code of the cli.'''


class KvmInstallError(Exception):
    '''Base class for every failure that aborts an invocation.'''
    exit_code = 1


class ConfigurationError(KvmInstallError):
    '''Invalid settings, flags or config file.'''
    exit_code = 2


class SSHKeyError(KvmInstallError):
    '''The public key to embed in user-data is missing or empty.'''
    exit_code = 3


class ImageError(KvmInstallError):
    '''The cloud image is missing and could not be downloaded.'''
    exit_code = 4


class DomainError(KvmInstallError):
    '''A libvirt/qemu command failed or the domain already exists.'''
    exit_code = 5
