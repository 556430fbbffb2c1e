'''
Locate cloud images in the cache directory, downloading them when absent.
'''
import os
import logging
import click
import requests
from kvminstall.exceptions import ImageError

LOGGER = logging.getLogger(__name__)
CHUNK_SIZE = 1024 * 1024


def image_path(settings):
    '''
    Path of the image the vm's disk is copied from.
    '''
    if settings.get('image'):
        return os.path.abspath(settings['image'])
    return os.path.join(settings['image_dir'], settings['distro_info'].image)


def fetch(settings):
    '''
    Return the path of the base image, downloading it first if it is not
    in the image directory yet.
    '''
    name = settings['name']
    path = image_path(settings)
    if os.path.isfile(path):
        LOGGER.info(f"{name} - Using cached image {path}")
        return path

    if settings.get('image'):
        raise ImageError(f"{name} - Custom image {path} does not exist.")

    try:
        if not os.path.isdir(settings['image_dir']):
            os.makedirs(settings['image_dir'])
    except OSError as err:
        LOGGER.critical(f"{name} - Unable to create image directory "
                        f"{settings['image_dir']}. {err}")
        raise ImageError(f"Unable to create {settings['image_dir']}: {err}") from err
    download(settings['distro_info'].download_url, path)
    return path


def download(url, destination):
    '''
    Stream url to destination through a '.part' file renamed once complete.
    :param url: http(s) url of the image
    :type url: str
    :param destination: final path of the image
    :type destination: str
    '''
    partial = destination + '.part'
    LOGGER.info(f"Downloading {url}")
    try:
        with requests.get(url, stream=True, timeout=30) as resp:
            resp.raise_for_status()
            total = int(resp.headers.get('content-length', 0))
            with open(partial, 'wb') as writer, \
                    click.progressbar(length=total,
                                      label=os.path.basename(destination)) as bar:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    writer.write(chunk)
                    bar.update(len(chunk))
        os.rename(partial, destination)
    except (requests.exceptions.RequestException, IOError) as err:
        LOGGER.critical(f"Failure downloading {url}. {err}")
        if os.path.exists(partial):
            os.remove(partial)
        raise ImageError(f"Unable to download {url}: {err}") from err
    except KeyboardInterrupt:
        if os.path.exists(partial):
            os.remove(partial)
        raise
    LOGGER.info(f"Saved image to {destination}")
